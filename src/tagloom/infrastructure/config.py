"""Workspace configuration: ``.tagloom/config.yml``."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from tagloom.errors import ConfigError
from tagloom.index.enumerator import DEFAULT_IGNORED_DIRS, MARKDOWN_EXTENSIONS

if TYPE_CHECKING:
    from pathlib import Path

CONFIG_DIR = ".tagloom"
CONFIG_FILE = "config.yml"

# Directories the watcher always ignores (dot-dirs are skipped anyway).
WATCH_IGNORED_DIRS: frozenset[str] = DEFAULT_IGNORED_DIRS | {".git", ".vscode"}

DEFAULT_STABILITY_MS = 300
DEFAULT_POLL_MS = 100
DEFAULT_MAX_WORKERS = 4

_ON_DELETE_CHOICES = ("rebuild", "remove")


@dataclass(frozen=True)
class TagloomConfig:
    """Settings for indexing and watching one workspace."""

    ignore_dirs: frozenset[str] = field(default=WATCH_IGNORED_DIRS)
    extensions: frozenset[str] = field(default=MARKDOWN_EXTENSIONS)
    stability_ms: int = DEFAULT_STABILITY_MS
    poll_ms: int = DEFAULT_POLL_MS
    max_workers: int = DEFAULT_MAX_WORKERS
    on_delete: str = "rebuild"  # "rebuild" | "remove"


def config_path(root: Path) -> Path:
    return root / CONFIG_DIR / CONFIG_FILE


def _str_list(data: dict[str, Any], key: str) -> list[str] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(x, str) and x for x in value):
        raise ConfigError(f"Invalid config: {key} must be a list of non-empty strings")
    return value


def _int(data: dict[str, Any], key: str, default: int, *, minimum: int) -> int:
    value = data.get(key, default)
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(f"Invalid config: {key} must be an integer >= {minimum}")
    return value


def load_config(root: Path) -> TagloomConfig:
    """Load ``<root>/.tagloom/config.yml``, falling back to defaults.

    Raises
    ------
    ConfigError
        The file is not valid YAML, is not a mapping, or holds a value of
        the wrong type.
    """
    path = config_path(root)
    if not path.is_file():
        return TagloomConfig()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot load {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config: {path} must contain a mapping")

    ignore_dirs = _str_list(data, "ignore_dirs")
    extensions = _str_list(data, "extensions")

    on_delete = data.get("on_delete", "rebuild")
    if on_delete not in _ON_DELETE_CHOICES:
        raise ConfigError(
            f"Invalid config: on_delete must be one of {', '.join(_ON_DELETE_CHOICES)}"
        )

    return TagloomConfig(
        ignore_dirs=WATCH_IGNORED_DIRS | frozenset(ignore_dirs or ()),
        extensions=(
            frozenset(e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions)
            if extensions
            else MARKDOWN_EXTENSIONS
        ),
        stability_ms=_int(data, "stability_ms", DEFAULT_STABILITY_MS, minimum=0),
        poll_ms=_int(data, "poll_ms", DEFAULT_POLL_MS, minimum=1),
        max_workers=_int(data, "max_workers", DEFAULT_MAX_WORKERS, minimum=1),
        on_delete=on_delete,
    )
