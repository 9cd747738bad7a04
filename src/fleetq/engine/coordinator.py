# src/fleetq/engine/coordinator.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fleetq.config import Settings
from fleetq.domain.models import (
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
from fleetq.logging import get_logger
from fleetq.storage import CoordinatorState

from .dispatch import Scheduler
from .lifecycle import LifecycleTracker
from .liveness import LivenessReaper
from .reconcile import ReconciliationEngine
from .sweeper import Sweeper
from .timeouts import TimeoutMonitor, TimeoutSweep

_LOG = get_logger(__name__)


@dataclass(frozen=True)
class CoordinatorConfig:
    """
    Runtime config for the coordinator and its sweeps.
    """
    default_expected_duration_s: int = 300
    dispatch_confirm_ms: int = 120_000
    inactivity_ms: int = 3_600_000

    timeout_sweep_s: float = 60.0
    liveness_sweep_s: float = 60.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "CoordinatorConfig":
        return cls(
            default_expected_duration_s=settings.default_expected_duration_s,
            dispatch_confirm_ms=settings.dispatch_confirm_ms,
            inactivity_ms=settings.inactivity_ms,
            timeout_sweep_s=settings.timeout_sweep_s,
            liveness_sweep_s=settings.liveness_sweep_s,
        )


class Coordinator:
    """
    Wires the stores, the dispatch/lifecycle components and the two
    background sweeps together. The API layer only talks to this class.
    """

    def __init__(self, cfg: Optional[CoordinatorConfig] = None, state: Optional[CoordinatorState] = None) -> None:
        self.cfg = cfg or CoordinatorConfig()
        self.state = state or CoordinatorState()

        self.scheduler = Scheduler(self.state, default_expected_duration_s=self.cfg.default_expected_duration_s)
        self.lifecycle = LifecycleTracker(self.state)
        self.timeouts = TimeoutMonitor(
            self.state,
            default_expected_duration_s=self.cfg.default_expected_duration_s,
            dispatch_confirm_ms=self.cfg.dispatch_confirm_ms,
        )
        self.liveness = LivenessReaper(self.state, inactivity_ms=self.cfg.inactivity_ms)
        self.reconciler = ReconciliationEngine(self.state, self.scheduler)

        self._sweeper = (
            Sweeper()
            .every("timeout", self.cfg.timeout_sweep_s, self.timeouts.sweep)
            .every("liveness", self.cfg.liveness_sweep_s, self.liveness.sweep)
        )

    def start(self) -> None:
        _LOG.info(
            "Starting coordinator: default_duration=%ds dispatch_confirm=%dms inactivity=%dms",
            self.cfg.default_expected_duration_s,
            self.cfg.dispatch_confirm_ms,
            self.cfg.inactivity_ms,
        )
        self._sweeper.start()

    def stop(self, *, timeout_s: float = 5.0) -> None:
        self._sweeper.stop(timeout_s=timeout_s)

    # -------------------------
    # Worker-facing operations
    # -------------------------

    def register(self, now_ms: int) -> WorkerRegistered:
        return self.scheduler.register(now_ms)

    def poll(self, worker_id: str, now_ms: int) -> PollResponse:
        return self.scheduler.poll(worker_id, now_ms)

    def start_task(self, worker_id: str, task_id: str, now_ms: int) -> ReportAck:
        return self.lifecycle.start(worker_id, task_id, now_ms)

    def finish_task(self, worker_id: str, task_id: str, output: str, now_ms: int) -> ReportAck:
        return self.lifecycle.finish(worker_id, task_id, output, now_ms)

    def fail_task(self, worker_id: str, task_id: str, error: str, details: Optional[str], now_ms: int) -> ReportAck:
        return self.lifecycle.failure(worker_id, task_id, error, details, now_ms)

    def sync_snapshot(self, worker_id: str, now_ms: int) -> SyncSnapshot:
        return self.reconciler.snapshot(worker_id, now_ms)

    def sync_report(self, worker_id: str, report: SyncReport, now_ms: int) -> SyncResult:
        return self.reconciler.reconcile(worker_id, report, now_ms)

    # -------------------------
    # Operator-facing operations
    # -------------------------

    def enqueue(self, worker_id: str, task: TaskCreate, now_ms: int) -> TaskEnqueued:
        return self.scheduler.enqueue(worker_id, task, now_ms)

    def worker_status(self, worker_id: str, now_ms: int) -> WorkerStatusView:
        return self.scheduler.worker_status(worker_id, now_ms)

    def fleet(self, now_ms: int) -> FleetView:
        return self.liveness.fleet(now_ms)

    def get_task(self, task_id: str, now_ms: int) -> TaskView:
        with self.state.lock:
            return self.state.tasks.get(task_id).to_view(now_ms)

    # -------------------------
    # Sweeps (also driven by the background threads)
    # -------------------------

    def sweep_timeouts(self, now_ms: int) -> TimeoutSweep:
        return self.timeouts.sweep(now_ms)

    def sweep_liveness(self, now_ms: int) -> list[str]:
        return self.liveness.sweep(now_ms)
