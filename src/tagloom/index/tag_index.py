"""In-memory inverted index: tag -> tagged paragraph locations.

The Markdown files on disk are the source of truth; the index is a cache
that can be cleared and rebuilt at any time.

Concurrency model:

* Every mutation of the maps happens under a single index lock, so readers
  never see an empty tag bucket or a half-replaced file.
* Work on one file (read -> parse -> replace) is serialized by a per-file
  lock.  A full build takes the same per-file locks, so it cannot clobber
  a newer single-file update or duplicate its entries.
* A generation counter is bumped by every open, build, clear and close.  Work
  started under an older generation is discarded instead of applied.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tagloom.errors import FileReadError, NoWorkspaceError, ParseError
from tagloom.index.enumerator import (
    is_path_within_root,
    list_markdown_files,
    normalize_path,
    read_text_file,
)
from tagloom.index.tag_parser import TaggedParagraph, parse_markdown_for_tags

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    Reader = Callable[[str], str]
    Enumerator = Callable[[str], Iterable[str | os.PathLike[str]]]
    Listener = Callable[["IndexChange"], None]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParagraphLocation:
    """Where a tagged paragraph lives in the workspace."""

    file_path: str
    relative_path: str  # display only
    text: str
    start_line: int
    end_line: int


@dataclass(frozen=True)
class TagInfo:
    """A tag and the number of paragraphs carrying it."""

    tag: str
    count: int


@dataclass(frozen=True)
class IndexStats:
    """Size of the index at one point in time.

    ``paragraphs`` counts index entries: a paragraph carrying two tags
    counts twice.
    """

    tags: int
    paragraphs: int
    files: int
    generation: int


@dataclass(frozen=True)
class IndexChange:
    """Notification sent to listeners after the index changed."""

    kind: str  # "build" | "update" | "remove" | "clear"
    path: str | None
    generation: int


# Collation order of tag characters, as in a root-locale comparison:
# punctuation before digits before letters, case ignored.
_COLLATION_RANK: dict[str, int] = {
    ch: rank for rank, ch in enumerate("_-0123456789abcdefghijklmnopqrstuvwxyz")
}


def _collation_key(tag: str) -> tuple[tuple[int, ...], tuple[bool, ...]]:
    unranked = len(_COLLATION_RANK)
    primary = tuple(_COLLATION_RANK.get(ch, unranked + ord(ch)) for ch in tag.lower())
    # Lowercase sorts before uppercase when the letters are equal.
    tertiary = tuple(ch.isupper() for ch in tag)
    return primary, tertiary


def _tag_sort_key(info: TagInfo) -> tuple[int, tuple[tuple[int, ...], tuple[bool, ...]]]:
    return (-info.count, _collation_key(info.tag))


def _relative_path(path: str, root: str) -> str:
    return os.path.relpath(path, root).replace(os.sep, "/")


class TagIndex:
    """Inverted index over the ``#tags`` of every Markdown file in a workspace.

    Parameters
    ----------
    reader:
        File content provider; must raise :class:`FileReadError` (or
        ``OSError``) when a file cannot be read.
    enumerator:
        Callable returning the Markdown files below a root directory.
    max_workers:
        Thread count used to read and parse files during :meth:`build_full`.
    """

    def __init__(
        self,
        *,
        reader: Reader = read_text_file,
        enumerator: Enumerator = list_markdown_files,
        max_workers: int | None = None,
    ) -> None:
        self._reader = reader
        self._enumerator = enumerator
        self._max_workers = max_workers

        self._lock = threading.Lock()
        self._by_tag: dict[str, list[ParagraphLocation]] = {}
        # Keys double as the set of indexed files (files without tags map
        # to an empty set).
        self._tags_by_file: dict[str, set[str]] = {}
        self._generation = 0
        self._root: str | None = None

        self._file_locks: dict[str, threading.Lock] = {}
        self._file_locks_guard = threading.Lock()

        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def root(self) -> str | None:
        """Workspace root, or ``None`` when no workspace is open."""
        return self._root

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def indexed_files(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._tags_by_file)

    def open(self, root: str | os.PathLike[str]) -> None:
        """Attach the index to the workspace at *root*; does not build."""
        with self._lock:
            self._root = normalize_path(root)
            self._generation += 1
            self._reset_locked()
        logger.info("Tag index opened for workspace %s", self._root)

    def close(self) -> None:
        """Clear the index and detach it from its workspace."""
        with self._lock:
            was_open = self._root is not None
            self._root = None
            self._generation += 1
            generation = self._generation
            self._reset_locked()
        if was_open:
            logger.info("Tag index closed")
            self._notify(IndexChange(kind="clear", path=None, generation=generation))

    def clear(self) -> None:
        """Drop every entry.  In-flight builds and updates are discarded."""
        with self._lock:
            self._generation += 1
            generation = self._generation
            self._reset_locked()
        self._notify(IndexChange(kind="clear", path=None, generation=generation))

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, callback: Listener) -> None:
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Listener) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    def _notify(self, change: IndexChange) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            try:
                callback(change)
            except Exception:
                logger.exception("Tag index listener %r failed on %s", callback, change.kind)

    # ------------------------------------------------------------------
    # Build / update
    # ------------------------------------------------------------------

    def _require_root(self) -> tuple[str, int]:
        """Return ``(root, generation)`` or raise :class:`NoWorkspaceError`."""
        with self._lock:
            if self._root is None:
                raise NoWorkspaceError("No workspace is open")
            return self._root, self._generation

    def build_full(self) -> bool:
        """Clear the index and re-index every Markdown file of the workspace.

        Files are read and parsed on a thread pool and inserted one at a
        time under the index lock; readers may see a partial index while
        this runs.  A file that cannot be read or parsed is logged and left
        out.

        Returns
        -------
        bool
            ``False`` when no workspace is open or when a newer build,
            clear or close superseded this one; ``True`` otherwise.
        """
        try:
            root, _ = self._require_root()
        except NoWorkspaceError:
            logger.warning("Cannot build tag index: no workspace open")
            return False

        with self._lock:
            self._generation += 1
            generation = self._generation
            self._reset_locked()

        logger.info("Building tag index for workspace: %s", root)
        started = time.monotonic()

        files = [normalize_path(p) for p in self._enumerator(root)]
        logger.info("Found %d markdown files to index", len(files))

        if files:
            with ThreadPoolExecutor(
                max_workers=self._max_workers,
                thread_name_prefix="tagloom-build",
            ) as executor:
                futures = [
                    executor.submit(self._index_file, path, root, generation)
                    for path in files
                ]
                for future in as_completed(futures):
                    if not future.result():
                        # Superseded: skip files that have not started yet.
                        for pending in futures:
                            pending.cancel()
                        break

        with self._lock:
            if self._generation != generation:
                logger.info("Tag index build (generation %d) was superseded", generation)
                return False
            tag_count = len(self._by_tag)
            paragraph_count = sum(len(locs) for locs in self._by_tag.values())
            file_count = len(self._tags_by_file)

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            "Tag index built in %dms: %d files, %d tags, %d paragraphs",
            elapsed_ms,
            file_count,
            tag_count,
            paragraph_count,
        )
        self._notify(IndexChange(kind="build", path=None, generation=generation))
        return True

    def update_file(self, path: str | os.PathLike[str]) -> bool:
        """Replace the entries of one file with the parse of its current content.

        If the file can no longer be read the net effect is a removal.
        Returns ``True`` when the result was applied, ``False`` when the
        call was ignored (no workspace, path outside it) or its result was
        discarded because a build started meanwhile.
        """
        try:
            root, generation = self._require_root()
        except NoWorkspaceError:
            logger.warning("Cannot update tag index: no workspace open")
            return False

        file_path = normalize_path(path)
        if not is_path_within_root(file_path, root):
            logger.warning("Ignoring %s: outside workspace %s", file_path, root)
            return False

        applied = self._index_file(file_path, root, generation)
        if applied:
            self._notify(IndexChange(kind="update", path=file_path, generation=generation))
        return applied

    def remove_file(self, path: str | os.PathLike[str]) -> bool:
        """Remove every entry contributed by *path*."""
        try:
            _, generation = self._require_root()
        except NoWorkspaceError:
            logger.warning("Cannot remove from tag index: no workspace open")
            return False

        file_path = normalize_path(path)
        with self._file_lock(file_path), self._lock:
            self._remove_locked(file_path)
        logger.debug("Removed %s from tag index", file_path)
        self._notify(IndexChange(kind="remove", path=file_path, generation=generation))
        return True

    def _index_file(self, path: str, root: str, generation: int) -> bool:
        """Read, parse and replace one file's entries.  Never raises."""
        with self._file_lock(path):
            paragraphs: list[TaggedParagraph] | None = None
            try:
                content = self._reader(path)
            except FileReadError as exc:
                logger.warning("Failed to index file: %s", exc)
            except OSError as exc:
                logger.warning("Failed to index file: %s", FileReadError(path, str(exc)))
            except Exception as exc:
                logger.exception("Failed to index file: %s", FileReadError(path, str(exc)))
            else:
                try:
                    paragraphs = parse_markdown_for_tags(content)
                except Exception as exc:
                    logger.exception("Failed to index file: %s", ParseError(path, str(exc)))

            relative = _relative_path(path, root)
            with self._lock:
                if self._generation != generation:
                    logger.debug("Discarding stale result for %s (generation %d)", path, generation)
                    return False
                self._remove_locked(path)
                if paragraphs is not None:
                    self._insert_locked(path, relative, paragraphs)
            return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_tags(self) -> list[TagInfo]:
        """All tags with their paragraph counts, most used first."""
        with self._lock:
            tags = [TagInfo(tag=tag, count=len(locs)) for tag, locs in self._by_tag.items()]
        tags.sort(key=_tag_sort_key)
        return tags

    def get_paragraphs_for_tag(self, tag: str) -> list[ParagraphLocation]:
        """Paragraphs carrying exactly *tag* (case-sensitive, without ``#``)."""
        with self._lock:
            return list(self._by_tag.get(tag, ()))

    def complete_tags(self, prefix: str, *, limit: int | None = None) -> list[TagInfo]:
        """Tags starting with *prefix*, case-insensitively, in :meth:`get_all_tags` order."""
        needle = prefix[1:] if prefix.startswith("#") else prefix
        needle = needle.casefold()
        matches = [info for info in self.get_all_tags() if info.tag.casefold().startswith(needle)]
        if limit is not None:
            return matches[:limit]
        return matches

    def stats(self) -> IndexStats:
        with self._lock:
            return IndexStats(
                tags=len(self._by_tag),
                paragraphs=sum(len(locs) for locs in self._by_tag.values()),
                files=len(self._tags_by_file),
                generation=self._generation,
            )

    # ------------------------------------------------------------------
    # Internals (callers hold self._lock)
    # ------------------------------------------------------------------

    def _reset_locked(self) -> None:
        self._by_tag.clear()
        self._tags_by_file.clear()
        # Every reset bumps the generation, so work still holding an old
        # per-file lock is discarded when it tries to apply.
        with self._file_locks_guard:
            self._file_locks.clear()

    def _insert_locked(
        self,
        path: str,
        relative: str,
        paragraphs: list[TaggedParagraph],
    ) -> None:
        tags: set[str] = set()
        for para in paragraphs:
            location = ParagraphLocation(
                file_path=path,
                relative_path=relative,
                text=para.text,
                start_line=para.start_line,
                end_line=para.end_line,
            )
            for tag in para.tags:
                self._by_tag.setdefault(tag, []).append(location)
                tags.add(tag)
        self._tags_by_file[path] = tags

    def _remove_locked(self, path: str) -> None:
        tags = self._tags_by_file.pop(path, None)
        if not tags:
            return
        for tag in tags:
            remaining = [loc for loc in self._by_tag.get(tag, ()) if loc.file_path != path]
            if remaining:
                self._by_tag[tag] = remaining
            else:
                # Never leave an empty bucket behind.
                self._by_tag.pop(tag, None)

    def _file_lock(self, path: str) -> threading.Lock:
        with self._file_locks_guard:
            lock = self._file_locks.get(path)
            if lock is None:
                lock = self._file_locks[path] = threading.Lock()
            return lock
