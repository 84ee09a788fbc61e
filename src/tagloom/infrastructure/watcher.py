"""File watcher: report Markdown add/change/unlink events for a workspace."""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

from watchfiles import Change, watch

from tagloom.index.enumerator import MARKDOWN_EXTENSIONS
from tagloom.infrastructure.config import DEFAULT_POLL_MS, WATCH_IGNORED_DIRS

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

# Upper bound for grouping a burst of changes into one batch.
DEFAULT_DEBOUNCE_MS = 1600

_CHANGE_KINDS: dict[object, str] = {
    Change.added: "add",
    Change.modified: "change",
    Change.deleted: "unlink",
}


def filter_relevant(
    changes: Iterable[tuple[object, str]],
    root: Path,
    *,
    ignored_dirs: frozenset[str] = WATCH_IGNORED_DIRS,
    extensions: frozenset[str] = MARKDOWN_EXTENSIONS,
) -> list[tuple[str, str]]:
    """Turn raw watchfiles changes into ``(kind, path)`` pairs.

    Drops temp files, dotfiles, files without a watched extension, paths
    outside *root*, and anything below a hidden or ignored directory.

    A batch is unordered, so a path reported with several kinds (an editor
    saving by delete and re-create) is reduced to one event: ``unlink`` if
    the file is gone now, otherwise ``add`` or ``change``.
    """
    kinds_by_path: dict[str, set[str]] = {}

    for change_type, path_str in changes:
        kind = _CHANGE_KINDS.get(change_type)
        if kind is None:
            continue

        p = Path(path_str)

        # Ignore temp files (name starts with ~ or ends with .tmp) and dotfiles.
        if p.name.startswith(("~", ".")) or p.name.endswith(".tmp"):
            continue

        if p.suffix.lower() not in extensions:
            continue

        try:
            rel = p.relative_to(root)
        except ValueError:
            continue

        if any(part.startswith(".") or part in ignored_dirs for part in rel.parts[:-1]):
            continue

        kinds_by_path.setdefault(path_str, set()).add(kind)

    result: list[tuple[str, str]] = []
    for path_str in sorted(kinds_by_path):
        kinds = kinds_by_path[path_str]
        if len(kinds) == 1:
            (kind,) = kinds
        elif not os.path.exists(path_str):
            kind = "unlink"
        elif "add" in kinds:
            kind = "add"
        else:
            kind = "change"
        result.append((kind, path_str))
    return result


def format_time() -> str:
    """Return current time as ``HH:MM:SS`` string."""
    return datetime.now(tz=timezone.utc).strftime("%H:%M:%S")


class WatchService:
    """Recursive watch of one workspace on a background thread.

    *callback* is invoked as ``callback(kind, path)`` from the watcher
    thread, with *kind* one of ``add``, ``change`` or ``unlink``.
    """

    def __init__(
        self,
        root: Path,
        callback: Callable[[str, str], None],
        *,
        ignored_dirs: frozenset[str] = WATCH_IGNORED_DIRS,
        extensions: frozenset[str] = MARKDOWN_EXTENSIONS,
        poll_ms: int = DEFAULT_POLL_MS,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
    ) -> None:
        self.root = root
        self._callback = callback
        self._ignored_dirs = ignored_dirs
        self._extensions = extensions
        self._poll_ms = poll_ms
        self._debounce_ms = debounce_ms
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None:
            return
        logger.info("Starting file watcher for: %s", self.root)
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="tagloom-watch", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        if thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None
        logger.info("File watcher stopped")

    def _run(self) -> None:
        """Blocking watch loop; exits when the stop event is set."""
        try:
            for batch in watch(
                self.root,
                debounce=self._debounce_ms,
                step=self._poll_ms,
                stop_event=self._stop_event,
                recursive=True,
            ):
                if self._stop_event.is_set():
                    return
                relevant = filter_relevant(
                    batch,
                    self.root,
                    ignored_dirs=self._ignored_dirs,
                    extensions=self._extensions,
                )
                if relevant:
                    logger.debug("File watcher detected %d change(s)", len(relevant))
                for kind, path_str in relevant:
                    try:
                        self._callback(kind, path_str)
                    except Exception:
                        logger.exception("File watcher callback failed for %s", path_str)
        except Exception:
            logger.exception("File watcher error on %s", self.root)
