# src/fleetq/api/app.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from fleetq.config import load_settings
from fleetq.domain.errors import AuthError
from fleetq.engine import Coordinator, CoordinatorConfig
from fleetq.logging import configure_logging, get_logger

from .routes import error_response, public_router, router

_LOG = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Lifespan handler.

    Responsible for:
    - loading settings
    - configuring logging
    - building the coordinator (in-memory state; a restart discards it)
    - starting the timeout and liveness sweeps
    - stopping the sweeps on shutdown
    """
    settings = load_settings()
    configure_logging(settings)

    if not settings.auth_secret:
        _LOG.warning("FLEETQ_AUTH_SECRET is not set; all protected endpoints will return 401.")

    coordinator = Coordinator(CoordinatorConfig.from_settings(settings))
    coordinator.start()

    # Store on app.state for DI
    app.state.settings = settings
    app.state.coordinator = coordinator

    _LOG.info("Startup complete.")

    try:
        yield
    finally:
        coordinator_obj = getattr(app.state, "coordinator", None)
        if coordinator_obj is not None:
            coordinator_obj.stop(timeout_s=5.0)
        _LOG.info("Shutdown complete.")


async def _auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    return error_response(exc)


app = FastAPI(
    title="fleetq coordinator",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_exception_handler(AuthError, _auth_error_handler)
app.include_router(public_router)
app.include_router(router)
