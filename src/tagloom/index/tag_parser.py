"""Tag parser: extract tagged paragraphs from Markdown text."""

from __future__ import annotations

import re
from dataclasses import dataclass

# A tag is ``#`` plus word characters and dashes, preceded by start of text
# or whitespace and followed by whitespace, punctuation, or end of text.
_TAG_RE = re.compile(r"(?:^|\s)(#[A-Za-z0-9_-]+)(?=\s|[.,!?;:]|$)")


@dataclass(frozen=True)
class TaggedParagraph:
    """A paragraph that mentions at least one tag."""

    text: str
    tags: tuple[str, ...]
    start_line: int
    end_line: int  # inclusive


def extract_tags(text: str) -> list[str]:
    """Return the distinct tags in *text*, without ``#``, in first-seen order."""
    seen: dict[str, None] = {}
    for match in _TAG_RE.finditer(text):
        seen.setdefault(match.group(1)[1:], None)
    return list(seen)


def has_tags(text: str) -> bool:
    """Return True if *text* contains at least one tag."""
    return _TAG_RE.search(text) is not None


def _make_paragraph(lines: list[str], start: int, end: int) -> TaggedParagraph | None:
    text = "\n".join(lines)
    tags = extract_tags(text)
    if not tags:
        return None
    return TaggedParagraph(text=text, tags=tuple(tags), start_line=start, end_line=end)


def parse_markdown_for_tags(content: str) -> list[TaggedParagraph]:
    """Split *content* into paragraphs and keep those carrying tags.

    A paragraph is a maximal run of non-blank lines; a line is blank when it
    is empty after stripping whitespace.  Line numbers are 0-indexed and the
    end line is inclusive.  Untagged paragraphs are dropped but still count
    for line numbering.
    """
    lines = content.split("\n")
    result: list[TaggedParagraph] = []

    current: list[str] = []
    start = 0

    for i, line in enumerate(lines):
        if line.strip():
            if not current:
                start = i
            current.append(line)
            continue
        if current:
            para = _make_paragraph(current, start, i - 1)
            if para is not None:
                result.append(para)
            current = []

    # Last paragraph when the text does not end with a blank line.
    if current:
        para = _make_paragraph(current, start, len(lines) - 1)
        if para is not None:
            result.append(para)

    return result
