# tests/test_dispatch.py
import pytest

from fleetq.domain.errors import NotFoundError, ValidationError
from fleetq.domain.models import TaskCreate
from fleetq.domain.states import TaskStatus
from fleetq.engine import Coordinator

T0 = 1_700_000_000_000


def _enqueue(c: Coordinator, worker_id: str, program: str, priority: int = 0, now: int = T0) -> str:
    return c.enqueue(worker_id, TaskCreate(program=program, priority=priority), now).task_id


def test_registrations_yield_distinct_ids(coordinator: Coordinator):
    ids = {coordinator.register(T0).worker_id for _ in range(50)}
    assert len(ids) == 50


def test_higher_priority_first_regardless_of_enqueue_order(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    low = _enqueue(coordinator, w, "low", priority=1, now=T0)
    high = _enqueue(coordinator, w, "high", priority=7, now=T0 + 1)

    assert coordinator.poll(w, T0 + 2).task.id == high
    assert coordinator.poll(w, T0 + 3).task.id == low


def test_equal_priority_is_fifo(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    ids = [_enqueue(coordinator, w, f"p{i}", now=T0 + i) for i in range(5)]

    polled = [coordinator.poll(w, T0 + 100 + i).task.id for i in range(5)]
    assert polled == ids


def test_poll_empty_queue_returns_marker(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    res = coordinator.poll(w, T0 + 1)
    assert res.task is None
    assert res.message


def test_poll_marks_task_dispatched_and_touches_worker(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    tid = _enqueue(coordinator, w, "prog")

    res = coordinator.poll(w, T0 + 500)
    assert res.task.id == tid
    assert res.task.program == "prog"
    assert res.task.expected_duration == 300  # default applied

    task = coordinator.get_task(tid, T0 + 500)
    assert task.status == TaskStatus.DISPATCHED
    assert task.dispatched_at == T0 + 500

    status = coordinator.worker_status(w, T0 + 500)
    assert status.last_seen == T0 + 500
    assert status.queue_length == 0
    assert [t.id for t in status.dispatched_tasks] == [tid]


def test_enqueue_position_follows_dispatch_order(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    assert coordinator.enqueue(w, TaskCreate(program="a"), T0).position == 1
    assert coordinator.enqueue(w, TaskCreate(program="b"), T0 + 1).position == 2
    # Jumps ahead of both priority-0 tasks.
    assert coordinator.enqueue(w, TaskCreate(program="c", priority=3), T0 + 2).position == 1


def test_enqueue_keeps_parameters_and_duration(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    tid = coordinator.enqueue(
        w,
        TaskCreate(program="file_out", parameters=["test.lua", "cHJpbnQoKQ=="], expected_duration=5),
        T0,
    ).task_id

    task = coordinator.poll(w, T0 + 1).task
    assert task.id == tid
    assert task.parameters == ["test.lua", "cHJpbnQoKQ=="]
    assert task.expected_duration == 5


def test_enqueue_blank_program_rejected(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    with pytest.raises(ValidationError):
        coordinator.enqueue(w, TaskCreate(program="   "), T0)


def test_unknown_worker_not_found(coordinator: Coordinator):
    with pytest.raises(NotFoundError):
        coordinator.poll("nope", T0)
    with pytest.raises(NotFoundError):
        coordinator.enqueue("nope", TaskCreate(program="x"), T0)
    with pytest.raises(NotFoundError):
        coordinator.enqueue("nope", TaskCreate(program="   "), T0)


def test_last_seen_never_moves_backwards(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    coordinator.poll(w, T0 + 10_000)
    coordinator.poll(w, T0 + 5_000)
    assert coordinator.worker_status(w, T0 + 10_000).last_seen == T0 + 10_000
