# Adapter boundary: Contrast traces/libraries normalized to our Finding schema.
from __future__ import annotations

import logging
from typing import List, Optional

from packages.contrast.client import ContrastClient
from packages.contrast.filters import resolve_filter_options
from packages.fingerprint.index import LIB_RATING_CONNECTOR, LIB_STALE_CONNECTOR
from packages.schema.models import Finding, Library, Trace

logger = logging.getLogger(__name__)


def finding_from_trace(trace: Trace, html_url: str) -> Finding:
    return Finding(
        description=trace.title,
        detail=html_url,
        source=trace.uuid,
        severity=trace.severity,
        fingerprint=trace.uuid,
    )


def finding_from_vulnerable_library(lib: Library, html_url: str) -> Finding:
    count = lib.total_vulnerabilities
    noun = "vulnerabilities" if count > 1 else "vulnerability"
    return Finding(
        description=f"{lib.file_name} has {count} known security {noun}.",
        detail=f"{lib.file_name} {LIB_RATING_CONNECTOR} {lib.grade}. {html_url}",
        source=lib.file_name,
        severity="High",
        fingerprint=lib.hash,
    )


def finding_from_stale_library(lib: Library, html_url: str) -> Finding:
    return Finding(
        description=f"{lib.file_name} is out of date.",
        detail=(
            f"Project uses version {lib.file_version}, "
            f"{LIB_STALE_CONNECTOR} {lib.latest_version}. {html_url}"
        ),
        source=lib.file_name,
        severity="Note",
        fingerprint=lib.hash,
    )


def collect_findings(
    client: ContrastClient,
    app_name: str,
    filter_options: Optional[str] = None,
    *,
    strict_servers: bool = False,
) -> List[Finding]:
    """Pull the current scan state for ``app_name`` as Findings."""

    app_id = client.resolve_app_id(app_name)
    filters = resolve_filter_options(client, app_id, filter_options, strict=strict_servers)
    logger.debug("Using filter options: %s", filters)

    findings: List[Finding] = []
    for lib in client.list_vulnerable_libraries(app_id, filters):
        findings.append(finding_from_vulnerable_library(lib, client.library_html_url(app_id, lib.hash)))
    for lib in client.list_stale_libraries(app_id, filters):
        findings.append(finding_from_stale_library(lib, client.library_html_url(app_id, lib.hash)))

    traces = client.list_traces(app_id, filters)
    logger.debug("Got %s traces", len(traces))
    for trace in traces:
        findings.append(finding_from_trace(trace, client.trace_html_url(app_id, trace.uuid)))
    return findings


__all__ = [
    "collect_findings",
    "finding_from_stale_library",
    "finding_from_trace",
    "finding_from_vulnerable_library",
]
