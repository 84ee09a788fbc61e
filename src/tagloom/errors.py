"""Exception hierarchy shared by the index, enumerator and synchronizer."""

from __future__ import annotations


class TagloomError(Exception):
    """Base class for all tagloom errors."""


class FileReadError(TagloomError):
    """A Markdown file could not be read (vanished, no permission, bad encoding)."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


class DirectoryReadError(TagloomError):
    """A directory could not be listed during enumeration."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot list {path}: {reason}")


class ParseError(TagloomError):
    """Unexpected failure inside the tag parser."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot parse {path}: {reason}")


class NoWorkspaceError(TagloomError):
    """An operation needs an open workspace and none is open."""


class ConfigError(TagloomError):
    """Invalid ``.tagloom/config.yml``."""
