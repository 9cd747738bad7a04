# src/fleetq/api/deps.py
from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, Header, Request

from fleetq.config import Settings
from fleetq.domain.errors import AuthError
from fleetq.engine import Coordinator

_BEARER_PREFIX = "Bearer "


def get_settings(request: Request) -> Settings:
    """
    Per-request access to settings stored on app.state during startup.
    """
    return request.app.state.settings  # type: ignore[attr-defined]


def get_coordinator(request: Request) -> Coordinator:
    """
    Per-request access to the Coordinator stored on app.state during startup.
    """
    return request.app.state.coordinator  # type: ignore[attr-defined]


def require_auth(
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Shared-secret bearer check, run before any core logic.
    """
    if not authorization or not authorization.startswith(_BEARER_PREFIX):
        raise AuthError("Missing or invalid authentication header")

    secret = authorization[len(_BEARER_PREFIX):]
    expected = settings.auth_secret.encode("utf-8")
    if not expected or not secrets.compare_digest(secret.encode("utf-8"), expected):
        raise AuthError("Invalid authentication secret")
