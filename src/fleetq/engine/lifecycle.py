# src/fleetq/engine/lifecycle.py
from __future__ import annotations

from typing import Optional

from fleetq.domain.errors import ConflictError, NotFoundError
from fleetq.domain.models import ReportAck
from fleetq.domain.states import TaskStatus
from fleetq.logging import get_logger
from fleetq.storage import CoordinatorState, TaskRecord, WorkerRecord

_LOG = get_logger(__name__)

_STARTABLE = frozenset({TaskStatus.QUEUED, TaskStatus.DISPATCHED})


class LifecycleTracker:
    """
    Applies start / finish / failure reports.

    Every transition is guarded on the task's prior state: a report that
    does not match (double finish, finish after a timeout reclaim, start of a
    terminal task) is rejected with ConflictError instead of being reapplied.
    """

    def __init__(self, state: CoordinatorState) -> None:
        self._state = state

    def start(self, worker_id: str, task_id: str, now_ms: int) -> ReportAck:
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            task = self._state.tasks.get(task_id)

            if task.status not in _STARTABLE:
                raise ConflictError(
                    f"Task {task_id} cannot be started from status {task.status}",
                    details={"task_id": task_id, "status": task.status.value},
                )
            # Orphans released by the liveness reaper (worker_id=None) may be adopted.
            if task.worker_id is not None and task.worker_id != worker.id:
                raise ConflictError(
                    f"Task {task_id} is owned by another worker",
                    details={"task_id": task_id, "worker_id": task.worker_id},
                )

            worker.touch(now_ms)
            worker.dispatched.pop(task.id, None)
            if task.id in worker.queue:
                worker.queue.remove(task.id)

            task.status = TaskStatus.IN_PROGRESS
            task.started_at = now_ms
            task.worker_id = worker.id
            worker.active[task.id] = now_ms

        _LOG.info("Task %s started on worker %s", task_id, worker_id)
        return ReportAck(task_id=task_id, worker_id=worker_id, status=TaskStatus.IN_PROGRESS)

    def finish(self, worker_id: str, task_id: str, output: str, now_ms: int) -> ReportAck:
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            task = self._active_task(worker, task_id)
            worker.touch(now_ms)

            task.status = TaskStatus.COMPLETED
            task.finished_at = now_ms
            task.output = output
            del worker.active[task.id]

        _LOG.info("Task %s completed on worker %s", task_id, worker_id)
        return ReportAck(task_id=task_id, worker_id=worker_id, status=TaskStatus.COMPLETED)

    def failure(
        self,
        worker_id: str,
        task_id: str,
        error: str,
        details: Optional[str],
        now_ms: int,
    ) -> ReportAck:
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            task = self._active_task(worker, task_id)
            worker.touch(now_ms)

            task.status = TaskStatus.FAILED
            task.finished_at = now_ms
            task.error = error
            task.details = details
            del worker.active[task.id]

        _LOG.warning("Task %s failed on worker %s: %s", task_id, worker_id, error)
        return ReportAck(task_id=task_id, worker_id=worker_id, status=TaskStatus.FAILED)

    def _active_task(self, worker: WorkerRecord, task_id: str) -> TaskRecord:
        """
        Resolves a task that must sit in `worker`'s active set.

        A task this worker owned that has already left the active set (terminal,
        or reclaimed) is a conflict; anything else is not found.
        """
        if task_id in worker.active:
            task = self._state.tasks.get(task_id)
            if task.status != TaskStatus.IN_PROGRESS:
                raise ConflictError(
                    f"Task {task_id} is not in progress",
                    details={"task_id": task_id, "status": task.status.value},
                )
            return task

        task = self._state.tasks.find(task_id)
        if task is not None and task.worker_id == worker.id:
            raise ConflictError(
                f"Task {task_id} is not active on worker {worker.id}",
                details={"task_id": task_id, "worker_id": worker.id, "status": task.status.value},
            )
        raise NotFoundError(
            f"Active task not found for worker {worker.id}: {task_id}",
            details={"task_id": task_id, "worker_id": worker.id},
        )
