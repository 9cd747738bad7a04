"""
Domain layer for fleetq.

- states: TaskStatus / SyncStatus enums
- models: Pydantic models for API input/output
- errors: domain-level exceptions
"""

from .states import SyncStatus, TaskStatus
from .models import (
    DispatchedTask,
    ErrorResponse,
    FailureReport,
    FinishReport,
    FleetView,
    PollResponse,
    ReportAck,
    SyncReport,
    SyncResult,
    SyncSnapshot,
    TaskCreate,
    TaskEnqueued,
    TaskView,
    WorkerRegistered,
    WorkerStatusView,
)
from .errors import (
    AuthError,
    ConflictError,
    FleetqError,
    NotFoundError,
    ValidationError,
)

__all__ = [
    "TaskStatus",
    "SyncStatus",
    "TaskCreate",
    "FinishReport",
    "FailureReport",
    "SyncReport",
    "WorkerRegistered",
    "TaskView",
    "TaskEnqueued",
    "DispatchedTask",
    "PollResponse",
    "ReportAck",
    "WorkerStatusView",
    "FleetView",
    "SyncSnapshot",
    "SyncResult",
    "ErrorResponse",
    "FleetqError",
    "AuthError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
]
