# tests/test_agent.py
import threading

import pytest
from fastapi.testclient import TestClient

from fleetq.agent import AgentConfig, CoordinatorClient, CoordinatorError, WorkerAgent


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _runner(program: str, parameters: list[str]) -> str:
    if program == "explode":
        raise RuntimeError("kaboom")
    return f"{program}:{','.join(parameters)}"


def _secret(client: TestClient) -> str:
    return client.headers["Authorization"].removeprefix("Bearer ")


def _agent(client: TestClient, clock: FakeClock, **cfg) -> WorkerAgent:
    coordinator = CoordinatorClient("http://testserver", _secret(client), client=client)
    agent = WorkerAgent(coordinator, _runner, AgentConfig(**cfg), clock=clock)
    agent.register()
    return agent


def test_agent_runs_tasks_and_reports(client: TestClient):
    clock = FakeClock()
    agent = _agent(client, clock, poll_interval_s=1.0, sync_grace_s=100.0)
    w = agent.worker_id

    ok = client.post(f"/workers/{w}/tasks", json={"program": "echo", "parameters": ["a", "b"]}).json()["task_id"]
    bad = client.post(f"/workers/{w}/tasks", json={"program": "explode"}).json()["task_id"]

    for _ in range(2):
        agent.run_once()
        agent.drain(timeout_s=5.0)
        clock.now += 1.0

    done = client.get(f"/tasks/{ok}").json()
    assert done["status"] == "completed"
    assert done["output"] == "echo:a,b"

    failed = client.get(f"/tasks/{bad}").json()
    assert failed["status"] == "failed"
    assert "kaboom" in failed["error"]
    assert failed["details"] == "RuntimeError"

    status = client.get(f"/workers/{w}/status").json()
    assert status["queue_length"] == 0
    assert status["active_tasks"] == []


def test_agent_polls_once_per_interval(client: TestClient):
    clock = FakeClock()
    agent = _agent(client, clock, poll_interval_s=5.0, sync_grace_s=100.0)
    w = agent.worker_id
    for program in ("a", "b"):
        client.post(f"/workers/{w}/tasks", json={"program": program})

    agent.run_once()
    agent.drain(timeout_s=5.0)
    clock.now += 1.0
    agent.run_once()  # not due yet
    agent.drain(timeout_s=5.0)

    assert client.get(f"/workers/{w}/status").json()["queue_length"] == 1


def test_agent_sync_reports_in_sync_after_grace(client: TestClient):
    clock = FakeClock()
    agent = _agent(client, clock, poll_interval_s=1000.0, sync_grace_s=10.0, sync_interval_s=60.0)

    agent.run_once()
    assert agent.last_sync is None

    clock.now = 10.0
    agent.run_once()
    assert agent.last_sync is not None
    assert agent.last_sync["sync_status"] == "in-sync"


def test_agent_sync_flags_unpolled_work(client: TestClient):
    clock = FakeClock()
    agent = _agent(client, clock)
    w = agent.worker_id
    client.post(f"/workers/{w}/tasks", json={"program": "not-yet-polled"})

    result = agent.sync_state()
    assert result["sync_status"] == "out-of-sync"
    assert result["recommendations"]["should_refresh_queue"] is True


def test_client_raises_on_error_status(client: TestClient):
    coordinator = CoordinatorClient("http://testserver", _secret(client), client=client)
    with pytest.raises(CoordinatorError) as exc:
        coordinator.poll("unknown-worker")
    assert exc.value.status_code == 404
    assert exc.value.code == "NOT_FOUND"


def test_client_snapshot_matches_status(client: TestClient):
    coordinator = CoordinatorClient("http://testserver", _secret(client), client=client)
    w = coordinator.register()
    t = client.post(f"/workers/{w}/tasks", json={"program": "p"}).json()["task_id"]

    snap = coordinator.snapshot(w)
    assert [task["id"] for task in snap["queued_tasks"]] == [t]
    assert snap["active_tasks"] == []


def test_client_sends_bearer_secret(client: TestClient):
    coordinator = CoordinatorClient("http://testserver", "wrong-secret", client=client)
    # Per-request header from the client wins over the TestClient default.
    with pytest.raises(CoordinatorError) as exc:
        coordinator.register()
    assert exc.value.status_code == 401


def test_agent_stops_polling_while_backlog_is_full(client: TestClient):
    release = threading.Event()

    def blocking_runner(program: str, parameters: list[str]) -> str:
        release.wait(timeout=5.0)
        return program

    clock = FakeClock()
    coordinator = CoordinatorClient("http://testserver", _secret(client), client=client)
    agent = WorkerAgent(
        coordinator,
        blocking_runner,
        AgentConfig(max_parallel=1, poll_interval_s=1.0, sync_grace_s=100.0),
        clock=clock,
    )
    w = agent.register()
    for program in ("a", "b", "c", "d"):
        client.post(f"/workers/{w}/tasks", json={"program": program})

    try:
        for _ in range(4):
            agent.run_once()
            clock.now += 1.0
        # One running, one waiting locally; the rest stay on the coordinator.
        status = client.get(f"/workers/{w}/status").json()
        assert status["queue_length"] == 2
    finally:
        release.set()
        agent.drain(timeout_s=5.0)
