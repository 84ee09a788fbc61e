"""Tagloom - in-memory tag index for Markdown workspaces."""

__version__ = "0.1.0"
