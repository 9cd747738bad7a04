# src/fleetq/domain/states.py
from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle states.

      - QUEUED: sitting in a worker's queue, waiting for a poll
      - DISPATCHED: handed out by a poll; the worker has not confirmed start yet
      - IN_PROGRESS: start reported; tracked in the worker's active set
      - COMPLETED / FAILED: reported by the worker
      - TIMEOUT: reclaimed by the timeout monitor; superseded by a replacement task

    DISPATCHED carries its own short confirm timeout so a worker dying between
    poll and start cannot lose the task silently.
    """

    QUEUED = "queued"
    DISPATCHED = "dispatched"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


class SyncStatus(StrEnum):
    IN_SYNC = "in-sync"
    OUT_OF_SYNC = "out-of-sync"
