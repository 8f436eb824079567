"""Drop findings that already have an unresolved ticket in the tracker."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Protocol

from packages.schema.models import Finding

logger = logging.getLogger(__name__)


class OpenTicketCounter(Protocol):
    def find_open_by_fingerprint(self, project: str, fingerprint: str) -> int: ...


class DedupFilter:
    """Stable filter: keeps a finding iff no open ticket carries its fingerprint.

    With ``workers > 1`` the per-finding lookups run on a bounded thread pool;
    output order still follows input order.
    """

    name = "dedup"

    def __init__(self, tracker: OpenTicketCounter, project: str, workers: int = 1):
        self.tracker = tracker
        self.project = project
        self.workers = max(1, workers)

    def apply(self, findings: Iterable[Finding]) -> List[Finding]:
        candidates = list(findings)
        logger.debug("Have %s items pre dedup filter", len(candidates))

        if self.workers > 1 and len(candidates) > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                counts = list(pool.map(self._open_count, candidates))
        else:
            counts = [self._open_count(finding) for finding in candidates]

        kept = [finding for finding, count in zip(candidates, counts) if count == 0]
        logger.debug("Have %s items post dedup filter", len(kept))
        return kept

    def _open_count(self, finding: Finding) -> int:
        if not finding.fingerprint.strip():
            logger.warning("No fingerprint on %r, keeping it without a tracker lookup", finding.description)
            return 0
        count = self.tracker.find_open_by_fingerprint(self.project, finding.fingerprint)
        logger.debug("Found %s open ticket(s) for %s", count, finding.description)
        return count


__all__ = ["DedupFilter", "OpenTicketCounter"]
