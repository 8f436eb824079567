"""Explicit composition of the reconcile stages.

Stages are constructed and registered here at start-up. Tracker-dependent
stages are only added when tracker settings exist, so no stage has to check
output routing itself.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from packages.config.settings import SyncSettings
from packages.contrast.client import ContrastClient
from packages.reconcile.dedup import DedupFilter
from packages.reconcile.resolution import ResolutionSyncEngine
from packages.reconcile.stale import StaleTicketReconciler
from packages.schema.models import BatchReport, Finding
from packages.tracker.client import JiraClient

logger = logging.getLogger(__name__)


class FindingStage(Protocol):
    name: str

    def apply(self, findings: Sequence[Finding]) -> List[Finding]: ...


class MaintenanceTask(Protocol):
    name: str

    def run(self) -> BatchReport: ...


class FindingsPipeline:
    def __init__(self, stages: Optional[Iterable[FindingStage]] = None):
        self.stages: List[FindingStage] = list(stages or [])

    def add(self, stage: FindingStage) -> "FindingsPipeline":
        self.stages.append(stage)
        return self

    def run(self, findings: Iterable[Finding]) -> List[Finding]:
        current = list(findings)
        for stage in self.stages:
            current = stage.apply(current)
            logger.debug("After %s: %s finding(s)", stage.name, len(current))
        return current


class MaintenancePass:
    """Ordered tasks; a tracker/backend outage aborts the pass, item errors do not."""

    def __init__(self, tasks: Optional[Iterable[MaintenanceTask]] = None):
        self.tasks: List[MaintenanceTask] = list(tasks or [])

    def add(self, task: MaintenanceTask) -> "MaintenancePass":
        self.tasks.append(task)
        return self

    def run(self) -> List[BatchReport]:
        return [task.run() for task in self.tasks]


def make_clients(settings: SyncSettings) -> Tuple[Optional[JiraClient], Optional[ContrastClient]]:
    tracker = JiraClient(settings.tracker) if settings.tracker is not None else None
    backend = ContrastClient(settings.backend) if settings.backend is not None else None
    return tracker, backend


def build_findings_pipeline(settings: SyncSettings, tracker: Optional[JiraClient] = None) -> FindingsPipeline:
    pipeline = FindingsPipeline()
    if settings.tracker is None or tracker is None:
        logger.debug("No tracker sink configured; findings pass through unfiltered")
        return pipeline
    return pipeline.add(DedupFilter(tracker, settings.tracker.project, workers=settings.dedup_workers))


def build_maintenance_pass(
    settings: SyncSettings,
    tracker: Optional[JiraClient],
    backend: Optional[ContrastClient] = None,
    *,
    present_fingerprints: Optional[Iterable[str]] = None,
) -> MaintenancePass:
    maintenance = MaintenancePass()
    if settings.tracker is None or tracker is None:
        logger.warning("No tracker configured; nothing to maintain")
        return maintenance

    tracker_settings = settings.tracker
    maintenance.add(
        StaleTicketReconciler(
            tracker,
            tracker_settings.project,
            present_fingerprints,
            target_name=tracker_settings.transition_name,
            default_transition_id=tracker_settings.default_transition_id,
            closeable_keys=settings.closeable_ticket_keys,
        )
    )

    backend_settings = settings.backend
    if backend_settings is not None and backend_settings.update_closed and backend is not None:
        app_id = backend.resolve_app_id(backend_settings.app_name)
        maintenance.add(
            ResolutionSyncEngine(
                tracker,
                backend,
                tracker_settings.project,
                app_id,
                text_predicate=tracker_settings.content_marker,
                age_window_days=tracker_settings.resolved_window_days,
            )
        )
    return maintenance


__all__ = [
    "FindingStage",
    "FindingsPipeline",
    "MaintenancePass",
    "MaintenanceTask",
    "build_findings_pipeline",
    "build_maintenance_pass",
    "make_clients",
]
