"""Scheduled maintenance job: close stale tickets and sync resolutions back.

Meant to be triggered by a timer (cron, CI schedule); each run is stateless.
Exit codes: 0 all good, 1 some items failed, 2 config/connectivity failure.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional, Set

from packages.config.logs import configure_logging
from packages.config.settings import SyncSettings, load_settings
from packages.contrast.client import ContrastClient
from packages.contrast.findings import collect_findings
from packages.exporters.jsonl import read_jsonl
from packages.reconcile.pipeline import build_maintenance_pass, make_clients
from packages.schema.errors import SyncError
from packages.schema.models import BatchReport

logger = logging.getLogger(__name__)


def present_fingerprints(
    settings: SyncSettings,
    backend: Optional[ContrastClient],
    findings_file: Optional[Path],
) -> Optional[Set[str]]:
    """Fingerprints in the current scan, or ``None`` when no scan is available."""

    if findings_file is not None:
        return {finding.fingerprint for finding in read_jsonl(findings_file)}
    if backend is not None and settings.backend is not None:
        findings = collect_findings(
            backend,
            settings.backend.app_name,
            settings.backend.filter_options,
            strict_servers=settings.backend.strict_servers,
        )
        return {finding.fingerprint for finding in findings}
    return None


def run_maintenance(settings: SyncSettings, findings_file: Optional[Path] = None) -> List[BatchReport]:
    tracker, backend = make_clients(settings)
    present = present_fingerprints(settings, backend, findings_file)
    if present is None:
        logger.warning("No current scan available; only explicitly closeable tickets will be closed")
    maintenance = build_maintenance_pass(settings, tracker, backend, present_fingerprints=present)
    return maintenance.run()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile Jira tickets with the latest Contrast scan")
    parser.add_argument("--config", type=Path, default=None, help="Flat YAML option file")
    parser.add_argument(
        "--findings",
        type=Path,
        default=None,
        help="JSONL findings of the current scan (default: pull from Contrast)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        print(f"[findingsync] Invalid configuration: {exc}", file=sys.stderr)
        return 2

    try:
        reports = run_maintenance(settings, args.findings)
    except SyncError as exc:
        print(f"[findingsync] Maintenance aborted: {exc}", file=sys.stderr)
        return 2

    for report in reports:
        print(f"[findingsync] {report.summary()}")
    return 0 if all(report.ok for report in reports) else 1


if __name__ == "__main__":
    raise SystemExit(main())
