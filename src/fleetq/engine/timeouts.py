# src/fleetq/engine/timeouts.py
from __future__ import annotations

from dataclasses import dataclass, field

from fleetq.domain.states import TaskStatus
from fleetq.logging import get_logger
from fleetq.storage import CoordinatorState, TaskRecord, WorkerRecord, new_id

_LOG = get_logger(__name__)


@dataclass
class TimeoutSweep:
    # (original id, replacement id) per timed-out task
    timed_out: list[tuple[str, str]] = field(default_factory=list)
    # dispatched tasks returned to the queue
    reclaimed: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.timed_out or self.reclaimed)


class TimeoutMonitor:
    """
    Periodic reclamation of stalled work.

    - IN_PROGRESS past its expected duration: the original becomes TIMEOUT
      (kept forever) and a replacement with priority + 1 goes to the front
      of the same worker's queue.
    - DISPATCHED without a start report past the confirm window: returned
      to QUEUED at the front of the worker's queue.

    The worker is never consulted; a late finish for a timed-out task is
    rejected by the lifecycle tracker.
    """

    def __init__(
        self,
        state: CoordinatorState,
        *,
        default_expected_duration_s: int,
        dispatch_confirm_ms: int,
    ) -> None:
        self._state = state
        self._default_expected_duration_s = default_expected_duration_s
        self._dispatch_confirm_ms = dispatch_confirm_ms

    def sweep(self, now_ms: int) -> TimeoutSweep:
        result = TimeoutSweep()
        with self._state.lock:
            for worker in self._state.workers:
                self._expire_active(worker, now_ms, result)
                self._reclaim_dispatched(worker, now_ms, result)

        if result:
            _LOG.info(
                "Timeout sweep: %d timed out, %d dispatched task(s) reclaimed.",
                len(result.timed_out), len(result.reclaimed),
            )
        return result

    def _expire_active(self, worker: WorkerRecord, now_ms: int, result: TimeoutSweep) -> None:
        for task_id, started_at in list(worker.active.items()):
            task = self._state.tasks.get(task_id)
            limit_ms = (task.expected_duration or self._default_expected_duration_s) * 1000
            elapsed_ms = now_ms - started_at
            if elapsed_ms <= limit_ms:
                continue

            task.status = TaskStatus.TIMEOUT
            task.finished_at = now_ms
            task.error = "timeout"
            task.details = f"No completion after {elapsed_ms / 1000.0:.1f}s (expected {limit_ms // 1000}s)"
            del worker.active[task_id]

            replacement = self._state.tasks.add(
                TaskRecord(
                    id=new_id(),
                    program=task.program,
                    parameters=list(task.parameters),
                    expected_duration=task.expected_duration,
                    priority=task.priority + 1,
                    created_at=now_ms,
                    worker_id=worker.id,
                    replaces=task.id,
                )
            )
            worker.queue.insert(0, replacement.id)
            result.timed_out.append((task.id, replacement.id))

            _LOG.warning(
                "Task %s on worker %s timed out after %dms; re-queued as %s (priority=%d)",
                task.id, worker.id, elapsed_ms, replacement.id, replacement.priority,
            )

    def _reclaim_dispatched(self, worker: WorkerRecord, now_ms: int, result: TimeoutSweep) -> None:
        expired = [
            task_id
            for task_id, dispatched_at in worker.dispatched.items()
            if now_ms - dispatched_at > self._dispatch_confirm_ms
        ]
        if not expired:
            return

        for task_id in expired:
            del worker.dispatched[task_id]
            task = self._state.tasks.get(task_id)
            task.status = TaskStatus.QUEUED
            task.dispatched_at = None

        worker.queue[0:0] = expired
        result.reclaimed.extend(expired)
        _LOG.warning(
            "Reclaimed %d unconfirmed dispatch(es) on worker %s: %s",
            len(expired), worker.id, ", ".join(expired),
        )
