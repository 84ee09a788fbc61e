"""Tests for tagloom.index.enumerator (Markdown discovery and file reading)."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import pytest

from tagloom.errors import FileReadError
from tagloom.index.enumerator import (
    is_path_within_root,
    list_markdown_files,
    read_text_file,
)


def _touch(root: Path, rel: str, content: str = "") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _names(paths: list[Path], root: Path) -> set[str]:
    return {p.relative_to(root).as_posix() for p in paths}


class TestListMarkdownFiles:
    def test_finds_nested_markdown(self, tmp_path: Path) -> None:
        """Recursion is unbounded and both extensions are accepted."""
        _touch(tmp_path, "top.md")
        _touch(tmp_path, "a/b/c/deep.markdown")
        _touch(tmp_path, "a/readme.txt")

        assert _names(list_markdown_files(tmp_path), tmp_path) == {
            "top.md",
            "a/b/c/deep.markdown",
        }

    def test_extension_case_insensitive(self, tmp_path: Path) -> None:
        _touch(tmp_path, "UPPER.MD")
        _touch(tmp_path, "Mixed.Markdown")

        assert _names(list_markdown_files(tmp_path), tmp_path) == {"UPPER.MD", "Mixed.Markdown"}

    def test_skips_hidden_and_ignored(self, tmp_path: Path) -> None:
        """Dot-entries, node_modules and __pycache__ are never visited."""
        _touch(tmp_path, "keep.md")
        _touch(tmp_path, ".git/notes.md")
        _touch(tmp_path, ".obsidian/cache.md")
        _touch(tmp_path, "node_modules/pkg/README.md")
        _touch(tmp_path, "__pycache__/x.md")
        _touch(tmp_path, ".hidden.md")

        assert _names(list_markdown_files(tmp_path), tmp_path) == {"keep.md"}

    def test_custom_ignore_set(self, tmp_path: Path) -> None:
        _touch(tmp_path, "keep.md")
        _touch(tmp_path, "archive/old.md")

        result = list_markdown_files(tmp_path, ignored_dirs={"archive"})
        assert _names(result, tmp_path) == {"keep.md"}

    def test_returns_absolute_paths(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _touch(tmp_path, "note.md")
        monkeypatch.chdir(tmp_path.parent)

        result = list_markdown_files(tmp_path.name)
        assert len(result) == 1
        assert result[0].is_absolute()

    def test_symlinked_directory_not_followed(self, tmp_path: Path) -> None:
        """A symlink loop does not hang the walk."""
        _touch(tmp_path, "real/note.md")
        os.symlink(tmp_path / "real", tmp_path / "link", target_is_directory=True)
        os.symlink(tmp_path, tmp_path / "real" / "loop", target_is_directory=True)

        assert _names(list_markdown_files(tmp_path), tmp_path) == {"real/note.md"}

    def test_unreadable_directory_skipped(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """One unreadable subtree does not abort the rest of the walk."""
        _touch(tmp_path, "ok/a.md")
        _touch(tmp_path, "locked/b.md")
        real_scandir = os.scandir

        def _scandir(path: os.PathLike[str] | str) -> object:
            if Path(path).name == "locked":
                raise PermissionError(13, "Permission denied", str(path))
            return real_scandir(path)

        monkeypatch.setattr(os, "scandir", _scandir)

        with caplog.at_level(logging.WARNING, logger="tagloom.index.enumerator"):
            result = list_markdown_files(tmp_path)

        assert _names(result, tmp_path) == {"ok/a.md"}
        assert "Skipping unreadable directory" in caplog.text

    def test_missing_root_is_empty(self, tmp_path: Path) -> None:
        assert list_markdown_files(tmp_path / "nope") == []


class TestReadTextFile:
    def test_reads_utf8(self, tmp_path: Path) -> None:
        path = _touch(tmp_path, "n.md", "héllo #tag\n")
        assert read_text_file(path) == "héllo #tag\n"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileReadError) as exc_info:
            read_text_file(tmp_path / "gone.md")
        assert exc_info.value.path == str(tmp_path / "gone.md")

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "bin.md"
        path.write_bytes(b"\xff\xfe\x00bad")
        with pytest.raises(FileReadError):
            read_text_file(path)

    def test_byte_order_mark_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "bom.md"
        path.write_bytes(b"\xef\xbb\xbf#todo buy milk\n")
        assert read_text_file(path) == "#todo buy milk\n"


class TestIsPathWithinRoot:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/notes", True),
            ("/notes/a.md", True),
            ("/notes/sub/../a.md", True),
            ("/notes-other/a.md", False),
            ("/notes/../etc/passwd", False),
            ("/elsewhere", False),
        ],
    )
    def test_cases(self, path: str, expected: bool) -> None:
        assert is_path_within_root(path, "/notes") is expected

    def test_root_with_trailing_separator(self) -> None:
        assert is_path_within_root("/notes/a.md", "/notes/") is True
