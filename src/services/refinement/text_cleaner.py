"""Regex-driven text cleanup for the refinement pipeline.

Three independent concerns live here, each a pure ``str -> str`` function:

1. **Noise cleanup** -- Removes artifacts that naive readers inject into the
   text stream: artificial ``## Paragraph 12`` headings, ``[Figure] ...``
   image placeholder lines, table-of-contents dot leaders and (optionally)
   running headers/footers and bare page numbers.

2. **Numbered-section promotion** -- Turns bare section markers at line
   start (``1.``, ``3-1.``, ``2-4-1.``, ``①``, ``(2)``) into markdown
   headings so the section builder and hierarchical chunker can see them.

3. **Whitespace normalization** -- Collapses blank-line runs, strips
   trailing spaces and trims the document.

Fenced code blocks are left untouched by every pass that could change
their meaning (indentation, blank lines, heading-like comments).
"""

from __future__ import annotations

import re
from typing import Callable

# ------------------------------------------------------------------
# Fenced code handling
# ------------------------------------------------------------------

_FENCED_BLOCK = re.compile(r"^[ \t]*```[^\n]*\n[\s\S]*?^[ \t]*```[ \t]*$", re.MULTILINE)


def map_outside_code(text: str, transform: Callable[[str], str]) -> str:
    """Apply *transform* to every segment of *text* outside fenced code blocks."""
    parts: list[str] = []
    last = 0
    for match in _FENCED_BLOCK.finditer(text):
        parts.append(transform(text[last : match.start()]))
        parts.append(match.group(0))
        last = match.end()
    parts.append(transform(text[last:]))
    return "".join(parts)


# ------------------------------------------------------------------
# Noise cleanup
# ------------------------------------------------------------------

# "## Paragraph 12" headings injected by readers that number every paragraph.
_ARTIFICIAL_HEADING = re.compile(
    r"^#{1,6}[ \t]*Paragraph[ \t]+\d+[ \t]*$\n?", re.MULTILINE | re.IGNORECASE
)

# Image placeholder lines: "[Figure] ...", "[그림] ...", "[표] ..."
_IMAGE_PLACEHOLDER = re.compile(
    r"^\[(?:그림|Figure|Image|이미지|사진|도표|표)\].*$\n?", re.MULTILINE | re.IGNORECASE
)

# Table-of-contents leaders: "Introduction ........ 3" keeps "Introduction".
_TOC_LEADER = re.compile(
    r"^(.*?\S)[ \t]*(?:\.{3,}|·{3,}|•{3,}|_{3,}|-{3,})[ \t]*\d+[ \t]*$", re.MULTILINE
)

_MULTI_NEWLINE = re.compile(r"\n{3,}")

# Interior runs only; leading indentation carries list nesting.
_INTERIOR_SPACES = re.compile(r"(?<=\S)[ \t]{2,}")

_HEADER_FOOTER_LINES: list[re.Pattern[str]] = [
    re.compile(r"^\s*Page\s+\d+(?:\s+of\s+\d+)?\s*$", re.IGNORECASE),
    re.compile(r"^\s*\d+\s*/\s*\d+\s*$"),
    re.compile(r"^\s*-\s*\d+\s*-\s*$"),
    re.compile(r"^\s*(?:CONFIDENTIAL|DRAFT|INTERNAL USE ONLY)\s*$", re.IGNORECASE),
    re.compile(r"^\s*(?:©|\(c\)|Copyright\b).*$", re.IGNORECASE),
]

_STANDALONE_PAGE_NUMBER = re.compile(r"^\s*-?\s*\d{1,4}\s*-?\s*$")


def clean_noise(text: str) -> str:
    """Strip artificial headings, image placeholders and TOC leaders.

    Also collapses 3+ newlines to exactly two and interior runs of spaces
    or tabs to a single space.
    """
    cleaned = _ARTIFICIAL_HEADING.sub("", text)
    cleaned = _IMAGE_PLACEHOLDER.sub("", cleaned)

    def _squeeze(segment: str) -> str:
        segment = _TOC_LEADER.sub(r"\1", segment)
        segment = _MULTI_NEWLINE.sub("\n\n", segment)
        return _INTERIOR_SPACES.sub(" ", segment)

    return map_outside_code(cleaned, _squeeze).strip()


def remove_headers_footers(text: str) -> str:
    """Drop running header/footer lines and ``---``/``===`` separator rows."""

    def _drop(segment: str) -> str:
        kept = [
            line
            for line in segment.split("\n")
            if not any(p.match(line) for p in _HEADER_FOOTER_LINES)
            and not re.match(r"^\s*[_=]{3,}\s*$", line)
        ]
        return "\n".join(kept)

    return map_outside_code(text, _drop)


def remove_page_numbers(text: str) -> str:
    """Drop lines that contain nothing but a page number (``12``, ``- 12 -``)."""

    def _drop(segment: str) -> str:
        return "\n".join(
            line for line in segment.split("\n") if not _STANDALONE_PAGE_NUMBER.match(line)
        )

    return map_outside_code(text, _drop)


# ------------------------------------------------------------------
# Numbered-section promotion
# ------------------------------------------------------------------

# Ordered most-specific first so "3-1." is never claimed by the "3." pass.
# Each entry: (pattern, heading level, guarded against list runs).
_SECTION_PASSES: list[tuple[re.Pattern[str], int, bool]] = [
    (re.compile(r"^\d+-\d+-\d+\.\s+\S.*$"), 4, False),
    (re.compile(r"^\d+-\d+\.\s+\S.*$"), 3, False),
    (re.compile(r"^\d+\.\s+\S.*$"), 2, True),
    (re.compile(r"^[①②③④⑤⑥⑦⑧⑨⑩]\s*\S.*$"), 3, False),
    (re.compile(r"^\(\d+\)\s+\S.*$"), 3, True),
]

# Any line that looks like an ordered-list entry.
_ORDERED_LINE = re.compile(r"^\s*(?:\d+\.|\(\d+\))\s+\S")

_MAX_SECTION_TITLE = 80


def promote_numbered_sections(text: str) -> str:
    """Convert bare numbered section markers into markdown headings.

    ``1. Foo`` -> ``## 1. Foo``, ``3-1. Foo`` -> ``### 3-1. Foo``,
    ``2-4-1. Foo`` -> ``#### 2-4-1. Foo``, ``① Foo``/``(2) Foo`` -> H3.

    Lines that are already headings, overly long, end like a sentence, or
    sit next to another numbered line (i.e. form an ordered list) are left
    alone.
    """

    def _promote(segment: str) -> str:
        lines = segment.split("\n")
        out: list[str] = []
        for i, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or line[:1].isspace():
                out.append(line)
                continue
            out.append(_promote_line(stripped, lines, i) or line)
        return "\n".join(out)

    return map_outside_code(text, _promote)


def _promote_line(stripped: str, lines: list[str], index: int) -> str | None:
    if len(stripped) > _MAX_SECTION_TITLE or stripped[-1] in ".,;:":
        return None
    for pattern, level, list_guarded in _SECTION_PASSES:
        if not pattern.match(stripped):
            continue
        if list_guarded and _in_ordered_run(lines, index):
            return None
        return f"{'#' * level} {stripped}"
    return None


def _in_ordered_run(lines: list[str], index: int) -> bool:
    neighbours = []
    if index > 0:
        neighbours.append(lines[index - 1])
    if index + 1 < len(lines):
        neighbours.append(lines[index + 1])
    return any(_ORDERED_LINE.match(n) for n in neighbours)


# ------------------------------------------------------------------
# Bullet glyphs
# ------------------------------------------------------------------

_BULLET_GLYPH = re.compile(r"^([ \t]*)[•●○■□▪▸►→][ \t]*(?=\S)", re.MULTILINE)


def normalize_bullet_glyphs(text: str) -> str:
    """Rewrite typographic bullets at line start (``•``, ``▪``, ``→``...) as ``- ``."""
    return map_outside_code(text, lambda s: _BULLET_GLYPH.sub(r"\1- ", s))


# ------------------------------------------------------------------
# Whitespace normalization
# ------------------------------------------------------------------

_BLANK_RUN = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")
_TRAILING_SPACE = re.compile(r"[ \t]+$", re.MULTILINE)


def normalize_whitespace(text: str) -> str:
    """Collapse 3+ newlines to 2, strip trailing whitespace per line, trim ends."""
    normalized = _TRAILING_SPACE.sub("", text)
    normalized = _BLANK_RUN.sub("\n\n", normalized)
    return normalized.strip()
