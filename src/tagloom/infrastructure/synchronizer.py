"""Index synchronizer: keep a :class:`TagIndex` in step with the file system.

Lifecycle::

    inactive --open(root)--> watching --close()--> inactive

While watching, file events are debounced per path and handed to a worker
pool: ``add``/``change`` re-index the one file, ``unlink`` triggers a full
rebuild (or a single-file removal when ``on_delete: remove`` is set).
Nothing here blocks the watcher thread on index work.
"""

from __future__ import annotations

import functools
import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tagloom.index.enumerator import list_markdown_files, normalize_path
from tagloom.index.tag_index import TagIndex
from tagloom.infrastructure.config import TagloomConfig, load_config
from tagloom.infrastructure.debounce import Debouncer
from tagloom.infrastructure.watcher import WatchService

if TYPE_CHECKING:
    from collections.abc import Callable

    from tagloom.index.tag_index import IndexChange

logger = logging.getLogger(__name__)


def _log_failure(future: Future[Any]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Background index task failed", exc_info=exc)


class IndexSynchronizer:
    """Drives incremental maintenance of *index* from file-watch events.

    Parameters
    ----------
    index:
        The tag index to maintain.
    config:
        Watch and worker settings; defaults to :class:`TagloomConfig`.
    watch_factory:
        Callable building the watch service; it receives the root, the
        event callback and the ``ignored_dirs``, ``extensions`` and
        ``poll_ms`` keyword arguments, and must return an object with
        ``start()`` and ``stop()``.
    """

    def __init__(
        self,
        index: TagIndex,
        *,
        config: TagloomConfig | None = None,
        watch_factory: Callable[..., Any] = WatchService,
    ) -> None:
        self.index = index
        self.config = config or TagloomConfig()
        self._watch_factory = watch_factory
        self._lock = threading.Lock()
        self._watcher: Any = None
        self._debouncer: Debouncer | None = None
        self._executor: ThreadPoolExecutor | None = None

    @property
    def state(self) -> str:
        """``"watching"`` while a workspace is open, else ``"inactive"``."""
        return "watching" if self._executor is not None else "inactive"

    def __enter__(self) -> IndexSynchronizer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, root: str | os.PathLike[str] | None) -> Future[bool] | None:
        """Start watching *root* and schedule the initial full build.

        Opening while another workspace is watched closes it first.
        ``None`` means no workspace is open: nothing happens.

        Returns the :class:`Future` of the initial build.
        """
        if root is None:
            logger.warning("No workspace open; index synchronizer stays inactive")
            return None
        if self.state == "watching":
            self.close()

        root_path = Path(normalize_path(root))
        self.index.open(root_path)

        debouncer = Debouncer(self.config.stability_ms, self._on_settled)
        watcher = self._watch_factory(
            root_path,
            self._on_fs_event,
            ignored_dirs=self.config.ignore_dirs,
            extensions=self.config.extensions,
            poll_ms=self.config.poll_ms,
        )
        with self._lock:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.max_workers,
                thread_name_prefix="tagloom-sync",
            )
            self._debouncer = debouncer
            self._watcher = watcher

        # Start watching before building so edits made during the build
        # are not missed.
        watcher.start()
        logger.info("Index synchronizer watching %s", root_path)
        return self._submit(self.index.build_full)

    def close(self) -> None:
        """Stop watching, drop pending work and clear the index."""
        with self._lock:
            watcher, debouncer, executor = self._watcher, self._debouncer, self._executor
            self._watcher = None
            self._debouncer = None
            self._executor = None

        if executor is None:
            return
        if watcher is not None:
            watcher.stop()
        if debouncer is not None:
            debouncer.cancel_all()
        executor.shutdown(wait=False, cancel_futures=True)
        self.index.close()
        logger.info("Index synchronizer stopped")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[IndexChange], None]) -> None:
        """Register a "tags updated" listener on the index."""
        self.index.add_listener(callback)

    def unsubscribe(self, callback: Callable[[IndexChange], None]) -> None:
        self.index.remove_listener(callback)

    def rebuild_index(self) -> Future[bool] | None:
        """Schedule a full rebuild; no-op when no workspace is open."""
        return self._submit(self.index.build_full)

    def apply_event(self, kind: str, path: str) -> Future[bool] | None:
        """Schedule the index operation for one settled file event.

        Returns immediately with the work's :class:`Future`, or ``None``
        when the event is unknown or the synchronizer is inactive.
        """
        if kind in ("add", "change"):
            return self._submit(self.index.update_file, path)
        if kind == "unlink":
            if self.config.on_delete == "remove":
                return self._submit(self._remove_or_update, path)
            # Conservative default: rebuild everything on deletion.
            return self._submit(self.index.build_full)
        logger.warning("Ignoring unknown file event %r for %s", kind, path)
        return None

    def _remove_or_update(self, path: str) -> bool:
        # The file may be back by the time the event settles (delete and
        # re-create save); re-index it instead of dropping live content.
        if os.path.exists(path):
            return self.index.update_file(path)
        return self.index.remove_file(path)

    def _on_fs_event(self, kind: str, path: str) -> None:
        """Watcher thread entry point: debounce, never index inline."""
        debouncer = self._debouncer
        if debouncer is not None:
            debouncer.push(path, kind)

    def _on_settled(self, path: str, kind: str) -> None:
        logger.debug("File settled: %s %s", kind, path)
        self.apply_event(kind, path)

    def _submit(self, fn: Callable[..., bool], *args: Any) -> Future[bool] | None:
        with self._lock:
            executor = self._executor
            if executor is None:
                logger.debug("Index synchronizer inactive; dropping %s", fn.__name__)
                return None
            try:
                future = executor.submit(fn, *args)
            except RuntimeError:
                # Shut down between the check and the submit.
                return None
        future.add_done_callback(_log_failure)
        return future


def create_index(config: TagloomConfig, *, max_workers: int | None = None) -> TagIndex:
    """Build a :class:`TagIndex` whose enumerator honours *config*."""
    enumerator = functools.partial(
        list_markdown_files,
        ignored_dirs=config.ignore_dirs,
        extensions=config.extensions,
    )
    return TagIndex(enumerator=enumerator, max_workers=max_workers or config.max_workers)


def open_workspace(
    root: str | os.PathLike[str],
    *,
    config: TagloomConfig | None = None,
    watch_factory: Callable[..., Any] = WatchService,
) -> IndexSynchronizer:
    """Load the workspace config, create an index and start synchronizing it.

    Raises
    ------
    ConfigError
        ``.tagloom/config.yml`` is invalid.
    """
    root_path = Path(normalize_path(root))
    if config is None:
        config = load_config(root_path)
    sync = IndexSynchronizer(create_index(config), config=config, watch_factory=watch_factory)
    sync.open(root_path)
    return sync
