"""Tests for tagloom.infrastructure.debounce (per-path quiet-period timers)."""

from __future__ import annotations

import logging
import threading
import time

import pytest

from tagloom.infrastructure.debounce import Debouncer


class _Recorder:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fired = threading.Event()
        self._lock = threading.Lock()

    def __call__(self, path: str, kind: str) -> None:
        with self._lock:
            self.calls.append((path, kind))
        self.fired.set()


class TestDebouncer:
    def test_burst_coalesces_to_one_call(self) -> None:
        """Rapid events for one path yield a single callback with the last kind."""
        rec = _Recorder()
        debouncer = Debouncer(100, rec)

        for _ in range(5):
            debouncer.push("/ws/a.md", "change")
            time.sleep(0.01)
        debouncer.push("/ws/a.md", "unlink")

        assert rec.fired.wait(2)
        time.sleep(0.3)
        assert rec.calls == [("/ws/a.md", "unlink")]

    def test_timer_resets_on_new_event(self) -> None:
        """Nothing fires while events keep arriving within the window."""
        rec = _Recorder()
        debouncer = Debouncer(400, rec)

        for _ in range(5):
            debouncer.push("/ws/a.md", "change")
            time.sleep(0.03)
        assert rec.calls == []

        assert rec.fired.wait(2)
        assert rec.calls == [("/ws/a.md", "change")]

    def test_paths_are_independent(self) -> None:
        rec = _Recorder()
        debouncer = Debouncer(50, rec)

        debouncer.push("/ws/a.md", "add")
        debouncer.push("/ws/b.md", "change")

        deadline = time.monotonic() + 2
        while len(rec.calls) < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert sorted(rec.calls) == [("/ws/a.md", "add"), ("/ws/b.md", "change")]

    def test_pending(self) -> None:
        debouncer = Debouncer(10_000, _Recorder())
        debouncer.push("/ws/a.md", "change")
        debouncer.push("/ws/b.md", "change")
        try:
            assert sorted(debouncer.pending) == ["/ws/a.md", "/ws/b.md"]
        finally:
            debouncer.cancel_all()
        assert debouncer.pending == []

    def test_cancel_all(self) -> None:
        rec = _Recorder()
        debouncer = Debouncer(100, rec)
        debouncer.push("/ws/a.md", "change")

        debouncer.cancel_all()
        time.sleep(0.3)
        assert rec.calls == []

    def test_callback_error_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        done = threading.Event()

        def _boom(path: str, kind: str) -> None:
            done.set()
            raise RuntimeError("callback bug")

        debouncer = Debouncer(10, _boom)
        with caplog.at_level(logging.ERROR, logger="tagloom.infrastructure.debounce"):
            debouncer.push("/ws/a.md", "change")
            assert done.wait(2)
            time.sleep(0.1)

        assert "Debounced callback failed for /ws/a.md" in caplog.text
        assert debouncer.pending == []
