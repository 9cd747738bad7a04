# src/fleetq/engine/liveness.py
from __future__ import annotations

from fleetq.domain.models import FleetSummary, FleetView, WorkerSummary
from fleetq.domain.states import TaskStatus
from fleetq.logging import get_logger
from fleetq.storage import CoordinatorState, WorkerRecord

_LOG = get_logger(__name__)


class LivenessReaper:
    """
    Removes workers silent for longer than the inactivity cutoff.

    Dispatched and in-progress tasks of a reaped worker go back to QUEUED with
    no owner; they stay in the task index only and are not re-queued anywhere.
    Its queued tasks are orphaned the same way.
    """

    def __init__(self, state: CoordinatorState, *, inactivity_ms: int) -> None:
        self._state = state
        self._inactivity_ms = inactivity_ms

    def sweep(self, now_ms: int) -> list[str]:
        reaped: list[str] = []
        with self._state.lock:
            for worker in self._state.workers:
                if worker.is_live(now_ms, self._inactivity_ms):
                    continue
                self._state.workers.remove(worker.id)
                released = self._release(worker)
                reaped.append(worker.id)
                _LOG.warning(
                    "Reaped worker %s (silent %ds); released %d task(s).",
                    worker.id, (now_ms - worker.last_seen) // 1000, released,
                )
        return reaped

    def _release(self, worker: WorkerRecord) -> int:
        released = 0
        for task_id in [*worker.active, *worker.dispatched]:
            task = self._state.tasks.get(task_id)
            task.status = TaskStatus.QUEUED
            task.worker_id = None
            task.started_at = None
            task.dispatched_at = None
            released += 1

        for task_id in worker.queue:
            self._state.tasks.get(task_id).worker_id = None

        worker.active.clear()
        worker.dispatched.clear()
        worker.queue.clear()
        return released

    def fleet(self, now_ms: int) -> FleetView:
        """
        Lists workers inside the liveness cutoff. Silent workers that have not
        been reaped yet only show up in the `inactive` count.
        """
        with self._state.lock:
            workers = list(self._state.workers)
            live = [w for w in workers if w.is_live(now_ms, self._inactivity_ms)]
            summaries = [
                WorkerSummary(
                    worker_id=w.id,
                    registered_at=w.registered_at,
                    last_seen=w.last_seen,
                    queue_length=len(w.queue),
                    dispatched_count=len(w.dispatched),
                    active_count=len(w.active),
                )
                for w in live
            ]

        return FleetView(
            total=len(workers),
            active=len(live),
            inactive=len(workers) - len(live),
            workers=summaries,
            summary=FleetSummary(
                total_active_tasks=sum(s.active_count for s in summaries),
                total_queued_tasks=sum(s.queue_length for s in summaries),
            ),
        )
