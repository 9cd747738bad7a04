# src/fleetq/engine/sweeper.py
from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from fleetq.logging import get_logger

_LOG = get_logger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


class Sweeper:
    """
    Runs periodic sweeps on independent fixed-interval daemon threads.

    Each sweep is a callable taking `now_ms`. A failing pass is logged and the
    loop continues on its next tick.
    """

    def __init__(self) -> None:
        self._stop = threading.Event()
        self._loops: list[tuple[str, float, Callable[[int], object]]] = []
        self._threads: list[threading.Thread] = []

    def every(self, name: str, interval_s: float, sweep: Callable[[int], object]) -> "Sweeper":
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._loops.append((name, interval_s, sweep))
        return self

    def start(self) -> None:
        """
        Starts one thread per registered sweep.
        Safe to call once.
        """
        if any(t.is_alive() for t in self._threads):
            return

        self._stop.clear()
        self._threads = [
            threading.Thread(
                target=self._run_loop,
                args=(name, interval_s, sweep),
                name=f"fleetq-{name}",
                daemon=True,
            )
            for name, interval_s, sweep in self._loops
        ]
        for t in self._threads:
            t.start()
        _LOG.info(
            "Started sweeps: %s",
            ", ".join(f"{name}/{interval_s:g}s" for name, interval_s, _ in self._loops),
        )

    def stop(self, *, timeout_s: Optional[float] = 5.0) -> None:
        _LOG.info("Stopping sweeps...")
        self._stop.set()
        for t in self._threads:
            t.join(timeout=timeout_s)
        _LOG.info("Sweeps stopped.")

    def _run_loop(self, name: str, interval_s: float, sweep: Callable[[int], object]) -> None:
        # First pass runs one interval after start, never at t=0.
        while not self._stop.wait(timeout=interval_s):
            try:
                sweep(now_ms())
            except Exception:
                _LOG.exception("%s sweep failed (continuing).", name)
