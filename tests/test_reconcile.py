# tests/test_reconcile.py
from fleetq.domain.models import SyncReport, TaskCreate
from fleetq.domain.states import SyncStatus
from fleetq.engine import Coordinator
from fleetq.engine.reconcile import diff_ids

T0 = 1_700_000_000_000


def _worker_with_work(c: Coordinator) -> tuple[str, str, str, str]:
    """Worker holding one queued, one dispatched and one active task."""
    w = c.register(T0).worker_id
    active = c.enqueue(w, TaskCreate(program="active", priority=9), T0).task_id
    handed = c.enqueue(w, TaskCreate(program="handed", priority=5), T0).task_id
    queued = c.enqueue(w, TaskCreate(program="queued"), T0).task_id
    c.poll(w, T0 + 1)
    c.start_task(w, active, T0 + 2)
    c.poll(w, T0 + 3)
    return w, queued, handed, active


def test_diff_ids():
    d = diff_ids(["a", "b", "x", "a"], ["a", "b", "c"])
    assert d.reported_ids == ["a", "b", "x"]
    assert d.server_ids == ["a", "b", "c"]
    assert d.missing_on_client == ["c"]
    assert d.extra_on_client == ["x"]
    assert not d.is_clean


def test_reporting_authoritative_sets_is_in_sync(coordinator: Coordinator):
    w, queued, handed, active = _worker_with_work(coordinator)

    snap = coordinator.sync_snapshot(w, T0 + 10)
    assert [t.id for t in snap.queued_tasks] == [queued, handed]
    assert [t.id for t in snap.active_tasks] == [active]

    result = coordinator.sync_report(
        w,
        SyncReport(
            queued_tasks=[t.id for t in snap.queued_tasks],
            active_tasks=[t.id for t in snap.active_tasks],
        ),
        T0 + 20,
    )
    assert result.sync_status == SyncStatus.IN_SYNC
    for diff in (result.analysis.queued_tasks, result.analysis.active_tasks):
        assert diff.missing_on_client == []
        assert diff.extra_on_client == []
    assert not result.recommendations.should_refresh_queue
    assert not result.recommendations.should_report_anomalies


def test_unknown_active_id_is_extra_on_client(coordinator: Coordinator):
    w, queued, handed, active = _worker_with_work(coordinator)

    result = coordinator.sync_report(
        w,
        SyncReport(queued_tasks=[queued, handed], active_tasks=[active, "ghost"]),
        T0 + 20,
    )
    assert result.sync_status == SyncStatus.OUT_OF_SYNC
    assert result.analysis.active_tasks.extra_on_client == ["ghost"]
    assert result.analysis.active_tasks.missing_on_client == []
    assert result.analysis.queued_tasks.is_clean
    assert result.recommendations.should_report_anomalies
    assert not result.recommendations.should_refresh_queue


def test_missing_ids_recommend_refresh(coordinator: Coordinator):
    w, queued, handed, active = _worker_with_work(coordinator)

    # Worker only knows about the task it polled.
    result = coordinator.sync_report(
        w,
        SyncReport.model_validate(
            {
                "queued_tasks": [{"id": handed, "program": "handed", "status": "received"}],
                "active_tasks": [],
            }
        ),
        T0 + 20,
    )
    assert result.sync_status == SyncStatus.OUT_OF_SYNC
    assert result.analysis.queued_tasks.missing_on_client == [queued]
    assert result.analysis.active_tasks.missing_on_client == [active]
    assert result.recommendations.should_refresh_queue
    assert "polling" in result.recommendations.message


def test_reconcile_does_not_mutate_state(coordinator: Coordinator):
    w, queued, handed, active = _worker_with_work(coordinator)
    before = coordinator.worker_status(w, T0 + 10)

    coordinator.sync_report(w, SyncReport(queued_tasks=["x"], active_tasks=["y"]), T0 + 20)

    after = coordinator.worker_status(w, T0 + 10)
    assert [t.id for t in after.queued_tasks] == [t.id for t in before.queued_tasks]
    assert [t.id for t in after.dispatched_tasks] == [t.id for t in before.dispatched_tasks]
    assert [t.id for t in after.active_tasks] == [t.id for t in before.active_tasks]
    assert after.last_seen == T0 + 20


def test_local_count_mismatch_is_noted(coordinator: Coordinator):
    w = coordinator.register(T0).worker_id
    result = coordinator.sync_report(
        w,
        SyncReport.model_validate(
            {"queued_tasks": [], "active_tasks": [], "local_queue_state": {"queue_length": 2, "active_count": 0}}
        ),
        T0 + 5,
    )
    assert result.sync_status == SyncStatus.IN_SYNC
    assert result.notes == ["local queue_length=2 but 0 id(s) reported"]
