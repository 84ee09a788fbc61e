"""Shared test fixtures for Tagloom."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


def _write_md(root: Path, rel: str, content: str) -> Path:
    """Write *content* to ``root/rel``, creating parent directories."""
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    """An empty workspace directory."""
    root = tmp_path / "notes"
    root.mkdir()
    return root


@pytest.fixture()
def scenario_workspace(workspace: Path) -> Path:
    """Workspace with one tagged and one untagged note."""
    _write_md(workspace, "a.md", "#x hello\n\n#x world\n")
    _write_md(workspace, "b.md", "no tags here\n")
    return workspace
