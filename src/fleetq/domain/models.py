from __future__ import annotations

from typing import Annotated, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .states import SyncStatus, TaskStatus


TaskId = Annotated[str, Field(min_length=1, max_length=256)]


# -------------------------
# Input models
# -------------------------

class TaskCreate(BaseModel):
    """
    API input model for queueing a task against a worker.

    expected_duration is in seconds; when omitted the coordinator default applies.
    """
    model_config = ConfigDict(extra="forbid")

    program: Annotated[str, Field(min_length=1, max_length=256)]
    parameters: list[str] = Field(default_factory=list)
    expected_duration: Optional[Annotated[int, Field(gt=0, le=604_800)]] = None  # up to 7d
    priority: int = 0

    @field_validator("program")
    @classmethod
    def strip_program(cls, program: str) -> str:
        return program.strip()


class FinishReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    output: str = ""


class FailureReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str = "Unknown error"
    details: str = ""
    # Worker-local clock; informational only.
    timestamp: Optional[int] = None


class ReportedTask(BaseModel):
    """
    One entry of a worker's self-reported queue/active list.

    Workers attach whatever local bookkeeping they keep (program, status,
    received_at, ...); only the id takes part in reconciliation.
    """
    model_config = ConfigDict(extra="allow")

    id: TaskId


class LocalQueueState(BaseModel):
    model_config = ConfigDict(extra="allow")

    queue_length: Optional[int] = Field(default=None, ge=0)
    active_count: Optional[int] = Field(default=None, ge=0)


class SyncReport(BaseModel):
    """
    A worker's snapshot of what it believes it holds.

    Entries may be bare ids or objects carrying an `id` field.
    """
    model_config = ConfigDict(extra="forbid")

    queued_tasks: list[Union[TaskId, ReportedTask]] = Field(default_factory=list)
    active_tasks: list[Union[TaskId, ReportedTask]] = Field(default_factory=list)
    local_queue_state: Optional[LocalQueueState] = None

    def queued_ids(self) -> list[str]:
        return [_entry_id(e) for e in self.queued_tasks]

    def active_ids(self) -> list[str]:
        return [_entry_id(e) for e in self.active_tasks]


def _entry_id(entry: Union[str, ReportedTask]) -> str:
    return entry if isinstance(entry, str) else entry.id


# -------------------------
# Output models
# -------------------------

class WorkerRegistered(BaseModel):
    model_config = ConfigDict(extra="forbid")

    worker_id: str
    registered_at: int


class TaskView(BaseModel):
    """
    API output model for a single task record.
    """
    model_config = ConfigDict(extra="forbid")

    id: str
    program: str
    parameters: list[str] = Field(default_factory=list)
    expected_duration: int
    priority: int

    status: TaskStatus
    worker_id: Optional[str] = None

    created_at: int
    dispatched_at: Optional[int] = None
    started_at: Optional[int] = None
    finished_at: Optional[int] = None

    output: Optional[str] = None
    error: Optional[str] = None
    details: Optional[str] = None

    # Id of the timed-out task this record supersedes.
    replaces: Optional[str] = None

    # Derived: seconds since start, only for in-progress tasks in status views.
    running_for_s: Optional[float] = None


class TaskEnqueued(BaseModel):
    model_config = ConfigDict(extra="forbid")

    task_id: str
    worker_id: str
    position: int


class DispatchedTask(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    program: str
    parameters: list[str]
    expected_duration: int
    priority: int


class PollResponse(BaseModel):
    """
    Result of a poll: exactly one task, or `task=None` with a message.
    """
    model_config = ConfigDict(extra="forbid")

    task: Optional[DispatchedTask] = None
    message: Optional[str] = None


class ReportAck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    task_id: str
    worker_id: str
    status: TaskStatus


class WorkerStatusView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    worker_id: str
    registered_at: int
    last_seen: int
    queue_length: int
    queued_tasks: list[TaskView]
    dispatched_tasks: list[TaskView]
    active_tasks: list[TaskView]


class WorkerSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    worker_id: str
    registered_at: int
    last_seen: int
    queue_length: int
    dispatched_count: int
    active_count: int


class FleetSummary(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_active_tasks: int
    total_queued_tasks: int


class FleetView(BaseModel):
    """
    Fleet listing. `workers` only lists workers inside the liveness cutoff;
    `inactive` counts registered workers that fell outside it but have not
    been reaped yet.
    """
    model_config = ConfigDict(extra="forbid")

    total: int
    active: int
    inactive: int
    workers: list[WorkerSummary]
    summary: FleetSummary


class SyncSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    worker_id: str
    queued_tasks: list[TaskView]
    active_tasks: list[TaskView]
    checked_at: int


class SetDiff(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reported_ids: list[str]
    server_ids: list[str]
    missing_on_client: list[str]
    extra_on_client: list[str]

    @property
    def is_clean(self) -> bool:
        return not self.missing_on_client and not self.extra_on_client


class SyncAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    queued_tasks: SetDiff
    active_tasks: SetDiff


class SyncRecommendations(BaseModel):
    model_config = ConfigDict(extra="forbid")

    should_refresh_queue: bool
    should_report_anomalies: bool
    message: str


class SyncResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    worker_id: str
    sync_status: SyncStatus
    analysis: SyncAnalysis
    recommendations: SyncRecommendations
    notes: list[str] = Field(default_factory=list)
    checked_at: int


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    error: str
    code: str
    details: dict = Field(default_factory=dict)
