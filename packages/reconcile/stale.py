"""Close tickets whose vulnerability is gone from the current scan."""
from __future__ import annotations

import logging
from typing import Collection, Iterable, List, Optional, Protocol

from packages.fingerprint import index
from packages.schema.errors import TransitionFailed
from packages.schema.models import BatchReport, Ticket, Transition

logger = logging.getLogger(__name__)


class WorkflowTracker(Protocol):
    def list_open(self, project: str) -> List[Ticket]: ...

    def list_transitions(self, ticket: Ticket) -> List[Transition]: ...

    def apply_transition(self, ticket: Ticket, transition_id: str, payload: Optional[dict] = None) -> None: ...


class StaleTicketReconciler:
    """Moves open vulnerability tickets to ``target_name`` once they go stale.

    A ticket is stale when its key is listed in ``closeable_keys`` or when its
    fingerprint is missing from ``present_fingerprints``. Passing
    ``present_fingerprints=None`` disables the scan diff.
    """

    name = "stale-tickets"

    def __init__(
        self,
        tracker: WorkflowTracker,
        project: str,
        present_fingerprints: Optional[Iterable[str]] = None,
        *,
        target_name: str = "Done",
        default_transition_id: str = "21",
        closeable_keys: Collection[str] = (),
    ):
        self.tracker = tracker
        self.project = project
        self.present = None if present_fingerprints is None else frozenset(present_fingerprints)
        self.target_name = target_name
        self.default_transition_id = str(default_transition_id)
        self.closeable_keys = frozenset(closeable_keys)

    def run(self) -> BatchReport:
        report = BatchReport(stage=self.name)
        tickets = self.tracker.list_open(self.project)
        logger.debug("Checking %s open ticket(s) in %s", len(tickets), self.project)

        for ticket in tickets:
            if index.is_library(ticket):
                logger.debug("%s is a library ticket, skipping", ticket.key)
                continue
            if not self.is_stale(ticket):
                continue
            if ticket.status.strip().lower() == self.target_name.strip().lower():
                logger.debug("%s already in '%s'", ticket.key, ticket.status)
                report.skipped.append(ticket.key)
                continue
            try:
                applied = self.transition(ticket)
            except TransitionFailed as exc:
                logger.error("%s", exc)
                report.failed.append(ticket.key)
                continue
            (report.succeeded if applied else report.skipped).append(ticket.key)

        logger.info(report.summary())
        return report

    def is_stale(self, ticket: Ticket) -> bool:
        if ticket.key in self.closeable_keys:
            return True
        if self.present is None:
            return False
        fingerprint = index.extract(ticket)
        if not fingerprint:
            logger.debug("%s has no fingerprint, cannot judge staleness", ticket.key)
            return False
        return fingerprint not in self.present

    def pick_transition(self, transitions: Iterable[Transition]) -> Optional[str]:
        """Id of the transition named ``target_name``, else the default id if offered."""
        offered = list(transitions)
        for transition in offered:
            if transition.name == self.target_name:
                return transition.id
        if any(transition.id == self.default_transition_id for transition in offered):
            logger.warning(
                "No '%s' transition available; falling back to transition id %s",
                self.target_name,
                self.default_transition_id,
            )
            return self.default_transition_id
        return None

    def transition(self, ticket: Ticket) -> bool:
        transition_id = self.pick_transition(self.tracker.list_transitions(ticket))
        if transition_id is None:
            logger.warning(
                "%s offers neither '%s' nor transition id %s, leaving it as '%s'",
                ticket.key,
                self.target_name,
                self.default_transition_id,
                ticket.status,
            )
            return False
        logger.info("Auto closing ticket %s using transition id %s", ticket.key, transition_id)
        self.tracker.apply_transition(ticket, transition_id)
        return True


__all__ = ["StaleTicketReconciler", "WorkflowTracker"]
