"""Push tracker resolutions back onto the matching Contrast traces."""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from packages.contrast.client import CLOSED_STATUSES
from packages.fingerprint import index
from packages.schema.errors import MarkFailed, TraceNotFound, UnmappedResolution
from packages.schema.models import BatchReport, Resolution, Ticket, Trace

logger = logging.getLogger(__name__)

# Possible Jira resolution values vary per instance; anything else is left alone.
RESOLUTION_STATUS = {
    "Fixed": "Remediated",
    "Done": "Remediated",
    "Complete": "Remediated",
    "Cancelled": "Remediated",
    "Won't Fix": "Not a Problem",
    "Won't Do": "Not a Problem",
    "Declined": "Not a Problem",
    "Duplicate": "Not a Problem",
}


class ResolvedTicketSource(Protocol):
    def find_recently_resolved(
        self,
        project: str,
        text_predicate: Optional[str] = None,
        age_window_days: Optional[int] = None,
    ) -> List[Ticket]: ...


class TraceBackend(Protocol):
    def trace_details(self, app_id: str, trace_id: str) -> Trace: ...

    def mark_trace(self, app_id: str, trace_uuid: str, status: str, note: str = "") -> None: ...


def backend_status_for(resolution: Optional[Resolution]) -> str:
    name = (resolution.name if resolution else "").strip().replace("\u2019", "'")
    try:
        return RESOLUTION_STATUS[name]
    except KeyError:
        raise UnmappedResolution(name) from None


class ResolutionSyncEngine:
    """Stateless between runs: everything is re-derived from both systems."""

    name = "resolution-sync"

    def __init__(
        self,
        tracker: ResolvedTicketSource,
        backend: TraceBackend,
        project: str,
        app_id: str,
        *,
        text_predicate: Optional[str] = None,
        age_window_days: Optional[int] = None,
    ):
        self.tracker = tracker
        self.backend = backend
        self.project = project
        self.app_id = app_id
        self.text_predicate = text_predicate
        self.age_window_days = age_window_days

    def run(self) -> BatchReport:
        report = BatchReport(stage=self.name)
        tickets = self.tracker.find_recently_resolved(
            self.project, self.text_predicate, self.age_window_days
        )
        logger.debug("Found %s resolved ticket(s) to sync", len(tickets))
        for ticket in tickets:
            self.sync_ticket(ticket, report)
        logger.info(report.summary())
        return report

    def sync_ticket(self, ticket: Ticket, report: BatchReport) -> None:
        if index.is_library(ticket):
            logger.debug("%s is a library issue, skipping", ticket.key)
            report.skipped.append(ticket.key)
            return

        trace_id = index.extract(ticket)
        if not trace_id:
            logger.warning("%s has no fingerprint, skipping", ticket.key)
            report.skipped.append(ticket.key)
            return

        try:
            status = backend_status_for(ticket.resolution)
        except UnmappedResolution as exc:
            logger.info("%s: %s, not syncing", ticket.key, exc)
            report.skipped.append(ticket.key)
            return

        try:
            trace = self.backend.trace_details(self.app_id, trace_id)
        except TraceNotFound as exc:
            logger.error("%s: %s", ticket.key, exc)
            report.failed.append(ticket.key)
            return

        if trace.status in CLOSED_STATUSES:
            logger.debug("Trace %s already %s", trace.uuid, trace.status)
            report.skipped.append(ticket.key)
            return

        try:
            self.backend.mark_trace(self.app_id, trace.uuid, status, note=f"Resolved in {ticket.key}")
        except MarkFailed as exc:
            logger.error("%s", exc)
            report.failed.append(ticket.key)
            return
        logger.info("Marked trace %s as %s from %s", trace.uuid, status, ticket.key)
        report.succeeded.append(ticket.key)


__all__ = [
    "RESOLUTION_STATUS",
    "ResolutionSyncEngine",
    "backend_status_for",
]
