# src/fleetq/api/routes.py
from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from fleetq.domain.errors import (
    AuthError,
    ConflictError,
    FleetqError,
    NotFoundError,
    ValidationError,
)
from fleetq.domain.models import (
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
from fleetq.engine import Coordinator
from fleetq.logging import get_logger

from .deps import get_coordinator, require_auth

_LOG = get_logger(__name__)

public_router = APIRouter()
router = APIRouter(dependencies=[Depends(require_auth)])

_HTTP_STATUS: dict[type[FleetqError], int] = {
    AuthError: 401,
    NotFoundError: 404,
    ConflictError: 409,
    ValidationError: 400,
}


def now_ms() -> int:
    return int(time.time() * 1000)


def error_response(err: FleetqError) -> JSONResponse:
    http_status = next((s for cls, s in _HTTP_STATUS.items() if isinstance(err, cls)), 400)
    payload = ErrorResponse(
        error=err.message,
        code=err.code,
        details=err.details or {},
    ).model_dump()
    return JSONResponse(status_code=http_status, content=payload)


@public_router.get("/healthz")
def healthz() -> dict:
    return {"ok": True, "timestamp": now_ms()}


# -------------------------
# Workers
# -------------------------

@router.post("/workers", response_model=WorkerRegistered, status_code=201)
def register_worker(coordinator: Coordinator = Depends(get_coordinator)):
    return coordinator.register(now_ms())


@router.get("/workers", response_model=FleetView)
def list_workers(coordinator: Coordinator = Depends(get_coordinator)):
    return coordinator.fleet(now_ms())


@router.get("/workers/{worker_id}/status", response_model=WorkerStatusView)
def worker_status(worker_id: str, coordinator: Coordinator = Depends(get_coordinator)):
    try:
        return coordinator.worker_status(worker_id, now_ms())
    except FleetqError as e:
        return error_response(e)


@router.get("/workers/{worker_id}/poll", response_model=PollResponse)
def poll(worker_id: str, coordinator: Coordinator = Depends(get_coordinator)):
    """
    Hands out at most one task. `task` is null when the queue is empty.
    """
    try:
        return coordinator.poll(worker_id, now_ms())
    except FleetqError as e:
        return error_response(e)


# -------------------------
# Tasks
# -------------------------

@router.post("/workers/{worker_id}/tasks", response_model=TaskEnqueued, status_code=201)
def enqueue_task(
    worker_id: str,
    task: TaskCreate,
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.enqueue(worker_id, task, now_ms())
    except FleetqError as e:
        return error_response(e)


@router.post("/workers/{worker_id}/tasks/{task_id}/start", response_model=ReportAck)
def report_start(
    worker_id: str,
    task_id: str,
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.start_task(worker_id, task_id, now_ms())
    except FleetqError as e:
        return error_response(e)


@router.post("/workers/{worker_id}/tasks/{task_id}/finish", response_model=ReportAck)
def report_finish(
    worker_id: str,
    task_id: str,
    report: FinishReport,
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.finish_task(worker_id, task_id, report.output, now_ms())
    except FleetqError as e:
        return error_response(e)


@router.post("/workers/{worker_id}/tasks/{task_id}/failure", response_model=ReportAck)
def report_failure(
    worker_id: str,
    task_id: str,
    report: FailureReport,
    coordinator: Coordinator = Depends(get_coordinator),
):
    try:
        return coordinator.fail_task(worker_id, task_id, report.error, report.details, now_ms())
    except FleetqError as e:
        return error_response(e)


@router.get("/tasks/{task_id}", response_model=TaskView)
def get_task(task_id: str, coordinator: Coordinator = Depends(get_coordinator)):
    try:
        return coordinator.get_task(task_id, now_ms())
    except FleetqError as e:
        return error_response(e)


# -------------------------
# Reconciliation
# -------------------------

@router.get("/workers/{worker_id}/sync", response_model=SyncSnapshot)
def sync_snapshot(worker_id: str, coordinator: Coordinator = Depends(get_coordinator)):
    try:
        return coordinator.sync_snapshot(worker_id, now_ms())
    except FleetqError as e:
        return error_response(e)


@router.post("/workers/{worker_id}/sync", response_model=SyncResult)
def sync_report(
    worker_id: str,
    report: SyncReport,
    coordinator: Coordinator = Depends(get_coordinator),
):
    """
    Diffs the worker's reported queued/active ids against the server's.
    Diagnostic only: nothing is corrected.
    """
    try:
        return coordinator.sync_report(worker_id, report, now_ms())
    except FleetqError as e:
        return error_response(e)
