"""Markdown file discovery and reading for a workspace."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from tagloom.errors import DirectoryReadError, FileReadError

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

# Directory names skipped in addition to anything starting with ".".
DEFAULT_IGNORED_DIRS: frozenset[str] = frozenset({"node_modules", "__pycache__"})

MARKDOWN_EXTENSIONS: frozenset[str] = frozenset({".md", ".markdown"})


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Return an absolute, normalized string form of *path* (symlinks kept)."""
    return os.path.abspath(os.fspath(path))


def is_path_within_root(path: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    """Check that *path* is *root* itself or lies below it.

    The separator is appended to the root before the prefix test so that
    ``/notes-other`` is not considered inside ``/notes``.
    """
    resolved = normalize_path(path)
    resolved_root = normalize_path(root)
    return resolved == resolved_root or resolved.startswith(resolved_root.rstrip(os.sep) + os.sep)


def read_text_file(path: str | os.PathLike[str]) -> str:
    """Read a UTF-8 text file, raising :class:`FileReadError` on failure.

    A leading byte order mark is dropped so a tag on the first line still
    starts the text.
    """
    try:
        return Path(path).read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise FileReadError(os.fspath(path), str(exc)) from exc


def _list_dir(directory: Path) -> list[os.DirEntry[str]]:
    try:
        with os.scandir(directory) as it:
            return list(it)
    except OSError as exc:
        raise DirectoryReadError(str(directory), str(exc)) from exc


def list_markdown_files(
    root: str | os.PathLike[str],
    *,
    ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
    extensions: Iterable[str] = MARKDOWN_EXTENSIONS,
) -> list[Path]:
    """Recursively collect Markdown files under *root*.

    Entries whose name starts with ``.`` and directories named in
    *ignored_dirs* are skipped.  Symlinked directories are not followed.
    A directory that cannot be listed is logged and contributes nothing;
    the walk carries on with its siblings.  The order of the result is
    unspecified.
    """
    ignored = frozenset(ignored_dirs)
    exts = frozenset(e.lower() for e in extensions)
    files: list[Path] = []
    pending: list[Path] = [Path(normalize_path(root))]

    while pending:
        directory = pending.pop()
        try:
            entries = _list_dir(directory)
        except DirectoryReadError as exc:
            logger.warning("Skipping unreadable directory: %s", exc)
            continue

        for entry in entries:
            name = entry.name
            if name.startswith("."):
                continue
            try:
                if entry.is_dir(follow_symlinks=False):
                    if name not in ignored:
                        pending.append(Path(entry.path))
                    continue
                if not entry.is_file():
                    continue
            except OSError as exc:
                logger.warning("Cannot stat %s: %s", entry.path, exc)
                continue
            if os.path.splitext(name)[1].lower() in exts:
                files.append(Path(entry.path))

    return files
