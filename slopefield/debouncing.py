"""Coalescing of bursty pointer events into at most one redraw per interval."""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional

from .mapping import Point

__all__ = ["PointerThrottle"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class PointerThrottle:
    """Forward the latest pointer position to ``callback`` at a fixed cadence.

    Positions submitted while a tick is pending replace each other; only the
    newest one reaches the callback. Ticks run on the running asyncio loop
    when there is one (Jupyter kernels), otherwise on a daemon
    ``threading.Timer``.

    Parameters
    ----------
    callback:
        Called with one :class:`~slopefield.mapping.Point`.
    interval_ms:
        Minimum spacing between callback invocations, in milliseconds.
    """

    def __init__(self, callback: Callable[[Point], Any], *, interval_ms: int = 30) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self._callback = callback
        self._interval_s = interval_ms / 1000.0

        self._latest: Optional[Point] = None
        self._lock = threading.Lock()
        self._timer: Optional[Any] = None

    def __call__(self, position: Point) -> None:
        with self._lock:
            self._latest = Point(*position)
            if self._timer is None:
                self._schedule_locked()

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._latest is not None

    def _schedule_locked(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(self._interval_s, self._on_tick)
            timer.daemon = True
            self._timer = timer
            timer.start()
            return

        self._timer = loop.call_later(self._interval_s, self._on_tick)

    def _on_tick(self) -> None:
        with self._lock:
            self._timer = None
            position, self._latest = self._latest, None

        if position is None:
            return
        try:
            self._callback(position)
        except Exception:
            logger.exception("pointer callback failed for %r", position)

    def cancel(self) -> None:
        """Drop any pending position and stop the scheduled tick."""
        with self._lock:
            self._latest = None
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
