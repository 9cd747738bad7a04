from __future__ import annotations

import uvicorn

from fleetq.config import Settings, load_settings
from fleetq.logging import configure_logging, get_logger

APP_PATH = "fleetq.api.app:app"


def uvicorn_options(settings: Settings) -> dict:
    """
    Keyword arguments for `uvicorn.run`.

    Logging is left to `configure_logging` (log_config=None), so uvicorn's own
    loggers share the coordinator's handler and format.
    """
    return {
        "host": settings.host,
        "port": settings.port,
        "log_level": settings.log_level,
        "log_config": None,
        # Coordinator state is in-process; more than one worker would split it.
        "workers": 1,
    }


def main() -> int:
    """
    Runs the coordinator: `python -m fleetq.main`.

    For development, `uvicorn fleetq.api.app:app --reload` works as well.
    """
    try:
        settings = load_settings()
    except ValueError as e:
        get_logger(__name__).error("Invalid configuration: %s", e)
        return 2

    configure_logging(settings)
    log = get_logger(__name__)

    if not settings.auth_secret:
        log.warning("FLEETQ_AUTH_SECRET is not set; every protected endpoint will reject requests.")

    log.info(
        "Starting coordinator on %s:%d (inactivity=%ds, dispatch_confirm=%ds)",
        settings.host,
        settings.port,
        settings.inactivity_s,
        settings.dispatch_confirm_s,
    )
    uvicorn.run(APP_PATH, **uvicorn_options(settings))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
