# src/fleetq/storage/__init__.py
"""
Storage layer for fleetq (in-process, not durable).

- records: TaskRecord / WorkerRecord
- stores: TaskStore, WorkerStore and the shared CoordinatorState
"""

from .records import TaskRecord, WorkerRecord
from .stores import CoordinatorState, TaskStore, WorkerStore, new_id

__all__ = [
    "TaskRecord",
    "WorkerRecord",
    "TaskStore",
    "WorkerStore",
    "CoordinatorState",
    "new_id",
]
