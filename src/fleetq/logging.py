from __future__ import annotations

import logging
import sys
from typing import Optional

from fleetq.config import Settings

LOGGER_NAME = "fleetq"

# Sweeps and agent executors run on named threads (fleetq-timeout, fleetq-agent_0, ...).
LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s - %(message)s"

_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}

# Per-request chatter; never louder than WARNING unless the root is.
_NOISY = ("uvicorn.access", "httpx", "httpcore")


def configure_logging(settings: Settings) -> int:
    """
    Routes all coordinator and agent logs to stdout at `settings.log_level`.

    Re-running replaces the previous stream handler, so uvicorn reloads and
    test app reloads do not duplicate lines. Returns the effective level.
    """
    level = parse_level(settings.log_level)

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        if isinstance(h, logging.StreamHandler):
            root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    root.addHandler(handler)

    logging.getLogger("uvicorn.error").setLevel(level)
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return level


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or LOGGER_NAME)


def parse_level(log_level: str) -> int:
    """Unknown names fall back to INFO; stdlib has no TRACE, so it maps to DEBUG."""
    return _LEVELS.get(log_level.lower().strip(), logging.INFO)
