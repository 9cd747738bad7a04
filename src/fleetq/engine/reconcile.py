# src/fleetq/engine/reconcile.py
from __future__ import annotations

from typing import Iterable, Optional

from fleetq.domain.models import (
    SetDiff,
    SyncAnalysis,
    SyncRecommendations,
    SyncReport,
    SyncResult,
    SyncSnapshot,
)
from fleetq.domain.states import SyncStatus
from fleetq.logging import get_logger
from fleetq.storage import CoordinatorState, WorkerRecord

from .dispatch import Scheduler

_LOG = get_logger(__name__)

REFRESH_MESSAGE = "Server holds tasks missing locally; refresh queue via polling."
ANOMALY_MESSAGE = "Worker reports active tasks unknown to the server; report anomalies."
STALE_QUEUE_MESSAGE = "Worker holds queued tasks the server no longer tracks."
IN_SYNC_MESSAGE = "Queue state is synchronized."


def diff_ids(reported: Iterable[str], server: Iterable[str]) -> SetDiff:
    """
    Compares one class of ids.

    missing_on_client keeps server order, extra_on_client keeps reported order;
    duplicates in the report collapse to their first occurrence.
    """
    reported_ids = list(dict.fromkeys(reported))
    server_ids = list(dict.fromkeys(server))
    reported_set = set(reported_ids)
    server_set = set(server_ids)
    return SetDiff(
        reported_ids=reported_ids,
        server_ids=server_ids,
        missing_on_client=[i for i in server_ids if i not in reported_set],
        extra_on_client=[i for i in reported_ids if i not in server_set],
    )


def recommend(analysis: SyncAnalysis) -> SyncRecommendations:
    should_refresh = bool(analysis.queued_tasks.missing_on_client or analysis.active_tasks.missing_on_client)
    should_report = bool(analysis.active_tasks.extra_on_client)

    messages = []
    if should_refresh:
        messages.append(REFRESH_MESSAGE)
    if should_report:
        messages.append(ANOMALY_MESSAGE)
    if analysis.queued_tasks.extra_on_client:
        messages.append(STALE_QUEUE_MESSAGE)

    return SyncRecommendations(
        should_refresh_queue=should_refresh,
        should_report_anomalies=should_report,
        message=" ".join(messages) if messages else IN_SYNC_MESSAGE,
    )


class ReconciliationEngine:
    """
    Diagnostic comparison of a worker's self-reported queue/active ids with
    the coordinator's authoritative sets.

    "Queued" on the server side means everything the worker should hold but
    has not started: its queue in dispatch order, followed by tasks already
    dispatched but not yet confirmed. Nothing is corrected here; the verdict
    and recommendation are advisory.
    """

    def __init__(self, state: CoordinatorState, scheduler: Scheduler) -> None:
        self._state = state
        self._scheduler = scheduler

    def snapshot(self, worker_id: str, now_ms: int) -> SyncSnapshot:
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            worker.touch(now_ms)
            tasks = self._state.tasks
            return SyncSnapshot(
                worker_id=worker.id,
                queued_tasks=[tasks.get(t).to_view() for t in self._server_queued(worker)],
                active_tasks=[tasks.get(t).to_view(now_ms) for t in worker.active],
                checked_at=now_ms,
            )

    def reconcile(self, worker_id: str, report: SyncReport, now_ms: int) -> SyncResult:
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            worker.touch(now_ms)
            analysis = SyncAnalysis(
                queued_tasks=diff_ids(report.queued_ids(), self._server_queued(worker)),
                active_tasks=diff_ids(report.active_ids(), list(worker.active)),
            )

        in_sync = analysis.queued_tasks.is_clean and analysis.active_tasks.is_clean
        result = SyncResult(
            worker_id=worker_id,
            sync_status=SyncStatus.IN_SYNC if in_sync else SyncStatus.OUT_OF_SYNC,
            analysis=analysis,
            recommendations=recommend(analysis),
            notes=_count_notes(report),
            checked_at=now_ms,
        )

        if not in_sync:
            _LOG.warning(
                "Worker %s out of sync: queued missing=%d extra=%d, active missing=%d extra=%d",
                worker_id,
                len(analysis.queued_tasks.missing_on_client),
                len(analysis.queued_tasks.extra_on_client),
                len(analysis.active_tasks.missing_on_client),
                len(analysis.active_tasks.extra_on_client),
            )
        return result

    def _server_queued(self, worker: WorkerRecord) -> list[str]:
        return [*self._scheduler.dispatch_order(worker), *worker.dispatched]


def _count_notes(report: SyncReport) -> list[str]:
    notes: list[str] = []
    local = report.local_queue_state
    if local is None:
        return notes
    _check_count(notes, "queue_length", local.queue_length, len(report.queued_tasks))
    _check_count(notes, "active_count", local.active_count, len(report.active_tasks))
    return notes


def _check_count(notes: list[str], name: str, claimed: Optional[int], listed: int) -> None:
    if claimed is not None and claimed != listed:
        notes.append(f"local {name}={claimed} but {listed} id(s) reported")
