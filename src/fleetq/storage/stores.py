# src/fleetq/storage/stores.py
from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from typing import Iterator, Optional

from fleetq.domain.errors import ConflictError, NotFoundError

from .records import TaskRecord, WorkerRecord


def new_id() -> str:
    return uuid.uuid4().hex


class TaskStore:
    """
    Global task index keyed by task id.

    Append-only: records are added and mutated in place, never deleted.
    Replacements for reclaimed tasks get fresh ids.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, TaskRecord] = {}

    def add(self, task: TaskRecord) -> TaskRecord:
        if task.id in self._tasks:
            raise ConflictError(f"Task already exists: {task.id}", details={"id": task.id})
        self._tasks[task.id] = task
        return task

    def get(self, task_id: str) -> TaskRecord:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}", details={"task_id": task_id})
        return task

    def find(self, task_id: str) -> Optional[TaskRecord]:
        return self._tasks.get(task_id)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[TaskRecord]:
        return iter(list(self._tasks.values()))

    def __len__(self) -> int:
        return len(self._tasks)


class WorkerStore:
    """
    Registered workers keyed by worker id.
    """

    def __init__(self) -> None:
        self._workers: dict[str, WorkerRecord] = {}

    def add(self, worker: WorkerRecord) -> WorkerRecord:
        if worker.id in self._workers:
            raise ConflictError(f"Worker already exists: {worker.id}", details={"worker_id": worker.id})
        self._workers[worker.id] = worker
        return worker

    def get(self, worker_id: str) -> WorkerRecord:
        worker = self._workers.get(worker_id)
        if worker is None:
            raise NotFoundError(f"Worker not found: {worker_id}", details={"worker_id": worker_id})
        return worker

    def find(self, worker_id: str) -> Optional[WorkerRecord]:
        return self._workers.get(worker_id)

    def remove(self, worker_id: str) -> WorkerRecord:
        worker = self.get(worker_id)
        del self._workers[worker_id]
        return worker

    def __contains__(self, worker_id: object) -> bool:
        return worker_id in self._workers

    def __iter__(self) -> Iterator[WorkerRecord]:
        # Snapshot so sweeps may remove workers while iterating.
        return iter(list(self._workers.values()))

    def __len__(self) -> int:
        return len(self._workers)


@dataclass
class CoordinatorState:
    """
    All mutable coordinator state plus the lock that serializes mutation.

    Request handlers run in FastAPI's threadpool and sweeps run on their own
    threads, so every read-modify-write goes through `lock`.
    """
    tasks: TaskStore = field(default_factory=TaskStore)
    workers: WorkerStore = field(default_factory=WorkerStore)
    lock: threading.RLock = field(default_factory=threading.RLock)
