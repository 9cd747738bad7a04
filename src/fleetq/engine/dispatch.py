# src/fleetq/engine/dispatch.py
from __future__ import annotations

from fleetq.domain.errors import ValidationError
from fleetq.domain.models import (
    PollResponse,
    TaskCreate,
    TaskEnqueued,
    WorkerRegistered,
    WorkerStatusView,
)
from fleetq.domain.states import TaskStatus
from fleetq.logging import get_logger
from fleetq.storage import CoordinatorState, TaskRecord, WorkerRecord, new_id

_LOG = get_logger(__name__)

EMPTY_QUEUE_MESSAGE = "No tasks available"


class Scheduler:
    """
    Registration, enqueue and poll-based dispatch.

    Dispatch order within a worker's queue:
    - higher priority first
    - ties broken by position in the queue; appended tasks therefore come out
      oldest first, and front-inserted replacements win ties
    """

    def __init__(self, state: CoordinatorState, *, default_expected_duration_s: int) -> None:
        self._state = state
        self._default_expected_duration_s = default_expected_duration_s

    def register(self, now_ms: int) -> WorkerRegistered:
        with self._state.lock:
            worker = self._state.workers.add(
                WorkerRecord(id=new_id(), registered_at=now_ms, last_seen=now_ms)
            )
        _LOG.info("Registered worker %s", worker.id)
        return WorkerRegistered(worker_id=worker.id, registered_at=worker.registered_at)

    def enqueue(self, worker_id: str, task: TaskCreate, now_ms: int) -> TaskEnqueued:
        """
        Creates a QUEUED task owned by `worker_id` and appends it to that
        worker's queue. `position` is the 1-based rank the task currently
        holds in dispatch order.
        """
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            if not task.program:
                raise ValidationError("program is required", details={"field": "program"})

            record = self._state.tasks.add(
                TaskRecord(
                    id=new_id(),
                    program=task.program,
                    parameters=list(task.parameters),
                    expected_duration=task.expected_duration or self._default_expected_duration_s,
                    priority=task.priority,
                    created_at=now_ms,
                    worker_id=worker.id,
                )
            )
            worker.queue.append(record.id)
            position = self.dispatch_order(worker).index(record.id) + 1

        _LOG.info(
            "Queued task %s (%s, priority=%d) for worker %s at position %d",
            record.id, record.program, record.priority, worker_id, position,
        )
        return TaskEnqueued(task_id=record.id, worker_id=worker_id, position=position)

    def poll(self, worker_id: str, now_ms: int) -> PollResponse:
        """
        Pops the next task from the worker's queue and marks it DISPATCHED.

        The task stays DISPATCHED until the worker reports start; the timeout
        monitor reclaims it if that never happens.
        """
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            worker.touch(now_ms)

            if not worker.queue:
                return PollResponse(task=None, message=EMPTY_QUEUE_MESSAGE)

            task_id = self.dispatch_order(worker)[0]
            worker.queue.remove(task_id)

            task = self._state.tasks.get(task_id)
            task.status = TaskStatus.DISPATCHED
            task.dispatched_at = now_ms
            task.worker_id = worker.id
            worker.dispatched[task.id] = now_ms

            dispatched = task.to_dispatch()

        _LOG.info("Dispatched task %s (%s) to worker %s", dispatched.id, dispatched.program, worker_id)
        return PollResponse(task=dispatched)

    def dispatch_order(self, worker: WorkerRecord) -> list[str]:
        """
        Queue ids sorted into the order polls will hand them out.
        Caller must hold the state lock.
        """
        tasks = self._state.tasks
        ranked = sorted(
            enumerate(worker.queue),
            key=lambda item: (-tasks.get(item[1]).priority, item[0]),
        )
        return [task_id for _, task_id in ranked]

    def worker_status(self, worker_id: str, now_ms: int) -> WorkerStatusView:
        with self._state.lock:
            worker = self._state.workers.get(worker_id)
            tasks = self._state.tasks
            return WorkerStatusView(
                worker_id=worker.id,
                registered_at=worker.registered_at,
                last_seen=worker.last_seen,
                queue_length=len(worker.queue),
                queued_tasks=[tasks.get(t).to_view() for t in self.dispatch_order(worker)],
                dispatched_tasks=[tasks.get(t).to_view() for t in worker.dispatched],
                active_tasks=[tasks.get(t).to_view(now_ms) for t in worker.active],
            )
