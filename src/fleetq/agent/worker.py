# src/fleetq/agent/worker.py
from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, Optional

from fleetq.logging import get_logger

from .client import CoordinatorClient, CoordinatorError

_LOG = get_logger(__name__)

# runner(program, parameters) -> output; raising marks the task failed.
Runner = Callable[[str, list[str]], str]


@dataclass
class ReceivedTask:
    id: str
    program: str
    parameters: list[str]
    priority: int
    expected_duration: int
    received_at: float
    started_at: Optional[float] = None

    def summary(self) -> dict:
        return {"id": self.id, "program": self.program}


@dataclass(frozen=True)
class AgentConfig:
    max_parallel: int = 2
    poll_interval_s: float = 2.0
    sync_interval_s: float = 60.0
    # No snapshot report before this long after start.
    sync_grace_s: float = 10.0
    idle_tick_s: float = 0.1


class WorkerAgent:
    """
    Pull loop for one remote worker.

    - registers once, then polls on its own cadence (one task per poll),
      pausing while `max_parallel` received tasks are still waiting
    - keeps polled tasks in a local queue, highest priority first
    - runs at most `max_parallel` tasks at a time through `runner`
    - reports start / finish / failure; report failures are logged, not retried
    - periodically submits its local queue/active ids for reconciliation

    There is no cancellation: once a task starts it runs to the end, even if
    the coordinator has already reclaimed it.
    """

    def __init__(
        self,
        client: CoordinatorClient,
        runner: Runner,
        cfg: Optional[AgentConfig] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._runner = runner
        self._cfg = cfg or AgentConfig()
        if self._cfg.max_parallel <= 0:
            raise ValueError("max_parallel must be > 0")
        self._clock = clock

        self.worker_id: Optional[str] = None
        self.last_sync: Optional[dict] = None

        self._lock = threading.RLock()
        self._received: list[ReceivedTask] = []
        self._active: dict[str, ReceivedTask] = {}
        self._futures: list[Future[None]] = []

        self._stop = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=self._cfg.max_parallel, thread_name_prefix="fleetq-agent")

        self._started_at = clock()
        self._last_poll: Optional[float] = None
        self._last_sync_at: Optional[float] = None

    def register(self) -> str:
        self.worker_id = self._client.register()
        _LOG.info("Registered with coordinator as %s", self.worker_id)
        return self.worker_id

    # -------------------------
    # Loop
    # -------------------------

    def run_forever(self) -> None:
        if self.worker_id is None:
            self.register()
        _LOG.info("Agent %s running (max_parallel=%d)", self.worker_id, self._cfg.max_parallel)
        while not self._stop.is_set():
            try:
                self.run_once()
            except Exception:
                _LOG.exception("Agent iteration failed (continuing).")
            self._stop.wait(timeout=self._cfg.idle_tick_s)
        self._executor.shutdown(wait=True)
        _LOG.info("Agent %s stopped.", self.worker_id)

    def run_once(self) -> None:
        """One iteration: poll if due, start what fits, sync if due."""
        if self.worker_id is None:
            raise RuntimeError("agent is not registered")

        now = self._clock()
        poll_due = self._last_poll is None or now - self._last_poll >= self._cfg.poll_interval_s
        # No poll while a full batch of received tasks is still waiting locally.
        if poll_due and not self._backlog_full():
            self._last_poll = now
            self.poll()

        self._dispatch_local()

        if now - self._started_at >= self._cfg.sync_grace_s and (
            self._last_sync_at is None or now - self._last_sync_at >= self._cfg.sync_interval_s
        ):
            self._last_sync_at = now
            try:
                self.sync_state()
            except CoordinatorError as e:
                _LOG.error("Failed to sync queue state: %s", e)

    def stop(self) -> None:
        self._stop.set()

    def drain(self, timeout_s: Optional[float] = None) -> None:
        """Blocks until every submitted task has finished."""
        with self._lock:
            pending = list(self._futures)
        wait(pending, timeout=timeout_s)

    # -------------------------
    # Steps
    # -------------------------

    def poll(self) -> Optional[ReceivedTask]:
        try:
            task = self._client.poll(self.worker_id)
        except CoordinatorError as e:
            _LOG.error("Failed to poll coordinator: %s", e)
            return None
        if task is None:
            return None

        received = ReceivedTask(
            id=task["id"],
            program=task["program"],
            parameters=list(task.get("parameters") or []),
            priority=task.get("priority", 0),
            expected_duration=task["expected_duration"],
            received_at=self._clock(),
        )
        with self._lock:
            if received.id in self._active or any(t.id == received.id for t in self._received):
                return None
            self._received.append(received)
            self._received.sort(key=lambda t: (-t.priority, t.received_at))
        _LOG.info("Received task %s (%s)", received.id, received.program)
        return received

    def sync_state(self) -> dict:
        with self._lock:
            queued = [t.summary() for t in self._received]
            active = [t.summary() for t in self._active.values()]

        result = self._client.sync(
            self.worker_id,
            queued,
            active,
            {"queue_length": len(queued), "active_count": len(active)},
        )
        self.last_sync = result
        if result.get("sync_status") == "out-of-sync":
            _LOG.warning(
                "Queue out of sync with coordinator: %s",
                result.get("recommendations", {}).get("message", ""),
            )
        return result

    def _backlog_full(self) -> bool:
        with self._lock:
            return len(self._received) >= self._cfg.max_parallel

    def _dispatch_local(self) -> None:
        with self._lock:
            while self._received and len(self._active) < self._cfg.max_parallel:
                task = self._received.pop(0)
                self._active[task.id] = task
                fut = self._executor.submit(self._process, task)
                fut.add_done_callback(self._on_task_done(task.id))
                self._futures.append(fut)
            self._futures = [f for f in self._futures if not f.done()]

    def _process(self, task: ReceivedTask) -> None:
        try:
            self._execute(task)
        finally:
            with self._lock:
                self._active.pop(task.id, None)

    def _execute(self, task: ReceivedTask) -> None:
        try:
            self._client.start(self.worker_id, task.id)
        except CoordinatorError as e:
            # Not fatal; the task still runs.
            _LOG.warning("Failed to report start of %s: %s", task.id, e)

        task.started_at = self._clock()
        _LOG.info("Running task %s: %s %s", task.id, task.program, " ".join(task.parameters))

        try:
            output = self._runner(task.program, list(task.parameters))
        except Exception as e:
            _LOG.warning("Task %s failed: %r", task.id, e)
            self._report(self._client.failure, task.id, f"Program execution failed: {e}", type(e).__name__)
            return

        self._report(self._client.finish, task.id, output if output is not None else "")
        _LOG.info("Completed task %s in %.1fs", task.id, self._clock() - task.started_at)

    def _report(self, send: Callable[..., dict], task_id: str, *args: str) -> None:
        try:
            send(self.worker_id, task_id, *args)
        except CoordinatorError as e:
            _LOG.warning("Failed to report result of %s: %s", task_id, e)

    def _on_task_done(self, task_id: str):
        def _cb(fut: Future[None]) -> None:
            try:
                fut.result()
            except Exception as e:
                _LOG.exception("Task %s processing raised: %r", task_id, e)

        return _cb
