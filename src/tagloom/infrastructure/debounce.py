"""Per-path debouncing of file events."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class Debouncer:
    """Delay *callback* until a path has been quiet for *delay_ms*.

    Each :meth:`push` restarts the path's timer; only the last event kind
    pushed for the path is delivered when the timer fires.
    """

    def __init__(self, delay_ms: int, callback: Callable[[str, str], None]) -> None:
        self._delay = delay_ms / 1000
        self._callback = callback
        self._lock = threading.Lock()
        self._timers: dict[str, threading.Timer] = {}
        self._kinds: dict[str, str] = {}
        # Token identifying the live timer of each path.
        self._ids: dict[str, object] = {}

    @property
    def pending(self) -> list[str]:
        with self._lock:
            return list(self._timers)

    def push(self, path: str, kind: str) -> None:
        with self._lock:
            timer = self._timers.get(path)
            if timer is not None:
                timer.cancel()
            self._kinds[path] = kind
            timer_id = object()
            timer = threading.Timer(self._delay, self._fire, args=(path, timer_id))
            timer.daemon = True
            self._timers[path] = timer
            self._ids[path] = timer_id
            timer.start()

    def cancel_all(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._kinds.clear()
            self._ids.clear()

    def _fire(self, path: str, timer_id: object) -> None:
        with self._lock:
            # A cancelled timer may still fire if it was already running.
            if self._ids.get(path) is not timer_id:
                return
            kind = self._kinds.pop(path)
            del self._timers[path]
            del self._ids[path]
        try:
            self._callback(path, kind)
        except Exception:
            logger.exception("Debounced callback failed for %s", path)
