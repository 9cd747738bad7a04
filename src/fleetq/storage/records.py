# src/fleetq/storage/records.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from fleetq.domain.models import DispatchedTask, TaskView
from fleetq.domain.states import TaskStatus


@dataclass
class TaskRecord:
    """
    One unit of work. Records live in the TaskStore for the lifetime of the
    process; terminal records are never removed.
    """
    id: str
    program: str
    parameters: list[str]
    expected_duration: int
    priority: int
    created_at: int

    status: TaskStatus = TaskStatus.QUEUED
    worker_id: Optional[str] = None

    dispatched_at: Optional[int] = None
    started_at: Optional[int] = None
    finished_at: Optional[int] = None

    output: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    replaces: Optional[str] = None

    def to_view(self, now_ms: Optional[int] = None) -> TaskView:
        running_for_s = None
        if now_ms is not None and self.status == TaskStatus.IN_PROGRESS and self.started_at is not None:
            running_for_s = max(0, now_ms - self.started_at) / 1000.0

        return TaskView(
            id=self.id,
            program=self.program,
            parameters=list(self.parameters),
            expected_duration=self.expected_duration,
            priority=self.priority,
            status=self.status,
            worker_id=self.worker_id,
            created_at=self.created_at,
            dispatched_at=self.dispatched_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
            output=self.output,
            error=self.error,
            details=self.details,
            replaces=self.replaces,
            running_for_s=running_for_s,
        )

    def to_dispatch(self) -> DispatchedTask:
        return DispatchedTask(
            id=self.id,
            program=self.program,
            parameters=list(self.parameters),
            expected_duration=self.expected_duration,
            priority=self.priority,
        )


@dataclass
class WorkerRecord:
    """
    A registered worker and the task ids it owns.

    - queue: pending task ids in insertion order (front inserts allowed)
    - dispatched: task id -> dispatched_at, handed out by poll, start not yet reported
    - active: task id -> started_at, start reported
    """
    id: str
    registered_at: int
    last_seen: int

    queue: list[str] = field(default_factory=list)
    dispatched: dict[str, int] = field(default_factory=dict)
    active: dict[str, int] = field(default_factory=dict)

    def touch(self, now_ms: int) -> None:
        # last_seen never moves backwards, even if a request carries an older clock.
        if now_ms > self.last_seen:
            self.last_seen = now_ms

    def is_live(self, now_ms: int, inactivity_ms: int) -> bool:
        return (now_ms - self.last_seen) <= inactivity_ms
