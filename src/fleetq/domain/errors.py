# src/fleetq/domain/errors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class FleetqError(Exception):
    """
    Base domain error.

    The API layer maps these to HTTP responses consistently.
    """
    message: str
    code: str = "FLEETQ_ERROR"
    details: Optional[dict[str, Any]] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class AuthError(FleetqError):
    code: str = "UNAUTHORIZED"


@dataclass
class ValidationError(FleetqError):
    code: str = "VALIDATION_ERROR"


@dataclass
class NotFoundError(FleetqError):
    code: str = "NOT_FOUND"


@dataclass
class ConflictError(FleetqError):
    """Raised when a lifecycle report does not match the task's current state."""
    code: str = "CONFLICT"
