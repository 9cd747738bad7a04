from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be an int, got: {raw!r}") from e
    return value


def _get_env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw


@dataclass(frozen=True)
class Settings:
    # Auth (shared bearer secret)
    auth_secret: str

    # Lifecycle / reclamation
    default_expected_duration_s: int
    dispatch_confirm_s: int
    inactivity_s: int

    # Sweep cadence
    timeout_sweep_s: int
    liveness_sweep_s: int

    # Server (used by fleetq.main when starting uvicorn programmatically)
    host: str
    port: int
    log_level: str

    @property
    def inactivity_ms(self) -> int:
        return self.inactivity_s * 1000

    @property
    def dispatch_confirm_ms(self) -> int:
        return self.dispatch_confirm_s * 1000


def load_settings() -> Settings:
    """
    Loads settings from env vars with sane defaults.

    Env vars:
      - FLEETQ_AUTH_SECRET (default: empty, every protected call is rejected)
      - FLEETQ_DEFAULT_EXPECTED_DURATION_S (default: 300)
      - FLEETQ_DISPATCH_CONFIRM_S (default: 120)
      - FLEETQ_INACTIVITY_S (default: 3600)
      - FLEETQ_TIMEOUT_SWEEP_S (default: 60)
      - FLEETQ_LIVENESS_SWEEP_S (default: 60)
      - FLEETQ_HOST (default: 127.0.0.1)
      - FLEETQ_PORT (default: 8000)
      - FLEETQ_LOG_LEVEL (default: info)
    """
    auth_secret = os.getenv("FLEETQ_AUTH_SECRET", "").strip()

    default_expected = _get_env_int("FLEETQ_DEFAULT_EXPECTED_DURATION_S", 300)
    if default_expected <= 0:
        raise ValueError("FLEETQ_DEFAULT_EXPECTED_DURATION_S must be > 0")

    dispatch_confirm = _get_env_int("FLEETQ_DISPATCH_CONFIRM_S", 120)
    if dispatch_confirm <= 0:
        raise ValueError("FLEETQ_DISPATCH_CONFIRM_S must be > 0")

    inactivity = _get_env_int("FLEETQ_INACTIVITY_S", 3600)
    if inactivity <= 0:
        raise ValueError("FLEETQ_INACTIVITY_S must be > 0")

    timeout_sweep = _get_env_int("FLEETQ_TIMEOUT_SWEEP_S", 60)
    if timeout_sweep <= 0:
        raise ValueError("FLEETQ_TIMEOUT_SWEEP_S must be > 0")

    liveness_sweep = _get_env_int("FLEETQ_LIVENESS_SWEEP_S", 60)
    if liveness_sweep <= 0:
        raise ValueError("FLEETQ_LIVENESS_SWEEP_S must be > 0")

    host = _get_env_str("FLEETQ_HOST", "127.0.0.1")
    port = _get_env_int("FLEETQ_PORT", 8000)
    if not (1 <= port <= 65535):
        raise ValueError("FLEETQ_PORT must be between 1 and 65535")

    log_level = _get_env_str("FLEETQ_LOG_LEVEL", "info").lower()

    return Settings(
        auth_secret=auth_secret,
        default_expected_duration_s=default_expected,
        dispatch_confirm_s=dispatch_confirm,
        inactivity_s=inactivity,
        timeout_sweep_s=timeout_sweep,
        liveness_sweep_s=liveness_sweep,
        host=host,
        port=port,
        log_level=log_level,
    )
