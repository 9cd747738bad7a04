# tests/conftest.py
import importlib
from contextlib import contextmanager
from typing import Iterator, Optional

import pytest
from fastapi.testclient import TestClient

from fleetq.engine import Coordinator, CoordinatorConfig

AUTH_SECRET = "test-secret"

DEFAULT_ENV = {
    "FLEETQ_AUTH_SECRET": AUTH_SECRET,
    "FLEETQ_DEFAULT_EXPECTED_DURATION_S": "300",
    "FLEETQ_DISPATCH_CONFIRM_S": "120",
    "FLEETQ_INACTIVITY_S": "3600",
    # Keep background sweeps out of the way; tests drive sweeps explicitly.
    "FLEETQ_TIMEOUT_SWEEP_S": "3600",
    "FLEETQ_LIVENESS_SWEEP_S": "3600",
    "FLEETQ_LOG_LEVEL": "warning",
}

AUTH_HEADERS = {"Authorization": f"Bearer {AUTH_SECRET}"}


def _apply_env(monkeypatch: pytest.MonkeyPatch, overrides: Optional[dict[str, str]] = None) -> None:
    for k, v in DEFAULT_ENV.items():
        monkeypatch.setenv(k, v)
    if overrides:
        for k, v in overrides.items():
            monkeypatch.setenv(k, v)


@contextmanager
def _client_ctx(monkeypatch: pytest.MonkeyPatch, *, overrides: Optional[dict[str, str]] = None) -> Iterator[TestClient]:
    _apply_env(monkeypatch, overrides)

    # Import after env is set; reload to avoid cross-test state
    app_mod = importlib.import_module("fleetq.api.app")
    importlib.reload(app_mod)

    with TestClient(app_mod.app, headers=AUTH_HEADERS) as client:
        yield client


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """
    Default integration test client, authorized with the shared secret.
    Every client gets a fresh in-memory coordinator.
    """
    with _client_ctx(monkeypatch) as c:
        yield c


@pytest.fixture()
def client_factory(monkeypatch: pytest.MonkeyPatch):
    """
    Factory for tests that need custom settings.

    Usage:
      with client_factory(overrides={"FLEETQ_INACTIVITY_S": "1"}) as client:
          ...
    """

    def _make(*, overrides: Optional[dict[str, str]] = None):
        return _client_ctx(monkeypatch, overrides=overrides)

    return _make


@pytest.fixture()
def coordinator() -> Coordinator:
    """
    Coordinator for unit tests. Sweeps are not started; tests pass explicit now_ms.
    """
    return Coordinator(
        CoordinatorConfig(
            default_expected_duration_s=300,
            dispatch_confirm_ms=120_000,
            inactivity_ms=3_600_000,
        )
    )
