"""Index domain — tag parser, Markdown enumerator, and the in-memory tag index."""

from tagloom.index.enumerator import (
    DEFAULT_IGNORED_DIRS,
    MARKDOWN_EXTENSIONS,
    is_path_within_root,
    list_markdown_files,
    read_text_file,
)
from tagloom.index.tag_index import (
    IndexChange,
    IndexStats,
    ParagraphLocation,
    TagIndex,
    TagInfo,
)
from tagloom.index.tag_parser import (
    TaggedParagraph,
    extract_tags,
    has_tags,
    parse_markdown_for_tags,
)

__all__ = [
    "DEFAULT_IGNORED_DIRS",
    "MARKDOWN_EXTENSIONS",
    "IndexChange",
    "IndexStats",
    "ParagraphLocation",
    "TagIndex",
    "TagInfo",
    "TaggedParagraph",
    "extract_tags",
    "has_tags",
    "is_path_within_root",
    "list_markdown_files",
    "parse_markdown_for_tags",
    "read_text_file",
]
