# src/fleetq/api/__init__.py
"""
API layer for fleetq (FastAPI).

- app: FastAPI instance + lifecycle hooks
- routes: REST endpoints
- deps: dependency injection helpers and the bearer check
"""

from .app import app

__all__ = ["app"]
