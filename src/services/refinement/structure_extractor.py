"""Structure extraction and section building over refined markdown.

Both operations re-scan the *final* refined text, so every offset they
record indexes directly into ``RefinedContent.text``:

- :func:`extract_structures` lifts fenced code blocks, pipe tables and
  lists (three or more consecutive items) out as typed
  :class:`~src.models.refined.StructuredElement` records.  Elements built
  from the reader's own :class:`~src.models.raw.TableData` come first with
  a ``(0, 0)`` location.
- :func:`build_sections` turns markdown headings into contiguous,
  non-overlapping :class:`~src.models.refined.Section` spans.

Headings, tables and list markers inside fenced code are ignored.
"""

from __future__ import annotations

import re

from src.models.raw import TableData
from src.models.refined import Section, StructuredElement, StructureType
from src.services.refinement.markdown_builder import table_rows_as_dicts
from src.services.refinement.normalizer import split_cells

_CODE_BLOCK = re.compile(
    r"^[ \t]*```([\w+#.-]*)[ \t]*\n([\s\S]*?)^[ \t]*```[ \t]*$", re.MULTILINE
)
_MARKDOWN_TABLE = re.compile(
    r"^[ \t]*\|.+\|[ \t]*\n[ \t]*\|[-: \t|]+\|[ \t]*\n(?:[ \t]*\|.+\|[ \t]*(?:\n|\Z))+",
    re.MULTILINE,
)
_LIST_RUN = re.compile(r"(?:^[ \t]*(?:[-*+]|\d+\.)[ \t]+\S.*(?:\n|\Z)){3,}", re.MULTILINE)
_LIST_MARKER = re.compile(r"^[ \t]*([-*+]|\d+\.)[ \t]+")
_HEADING = re.compile(r"^(#{1,6})[ \t]+(\S.*?)[ \t]*$", re.MULTILINE)


# ------------------------------------------------------------------
# Code spans
# ------------------------------------------------------------------

def code_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of every fenced code block in *text*."""
    return [(m.start(), m.end()) for m in _CODE_BLOCK.finditer(text)]


def _overlaps(spans: list[tuple[int, int]], start: int, end: int) -> bool:
    return any(start < span_end and span_start < end for span_start, span_end in spans)


# ------------------------------------------------------------------
# Extractors
# ------------------------------------------------------------------

def extract_code_blocks(text: str) -> list[StructuredElement]:
    elements: list[StructuredElement] = []
    for match in _CODE_BLOCK.finditer(text):
        language = match.group(1) or ""
        elements.append(
            StructuredElement(
                type=StructureType.CODE,
                caption=f"Code block ({language})" if language else "Code block",
                data={"language": language, "content": match.group(2).rstrip("\n")},
                start=match.start(),
                end=match.end(),
            )
        )
    return elements


def extract_tables(text: str, spans: list[tuple[int, int]] | None = None) -> list[StructuredElement]:
    """Extract pipe tables (header, separator, one or more data rows)."""
    spans = code_spans(text) if spans is None else spans
    elements: list[StructuredElement] = []
    for match in _MARKDOWN_TABLE.finditer(text):
        block = match.group(0).rstrip("\n")
        start = match.start()
        end = start + len(block)
        if _overlaps(spans, start, end):
            continue
        lines = block.split("\n")
        headers = split_cells(lines[0])
        rows: list[dict[str, str]] = []
        for line in lines[2:]:
            cells = split_cells(line)
            rows.append(
                {
                    header or f"Col{i + 1}": (cells[i] if i < len(cells) else "")
                    for i, header in enumerate(headers)
                }
            )
        elements.append(
            StructuredElement(
                type=StructureType.TABLE,
                caption=f"Table ({len(rows)} rows)",
                data={"headers": headers, "rows": rows},
                start=start,
                end=end,
            )
        )
    return elements


def extract_lists(text: str, spans: list[tuple[int, int]] | None = None) -> list[StructuredElement]:
    """Extract runs of three or more list lines.

    A run is ordered when its first marker is numeric.
    """
    spans = code_spans(text) if spans is None else spans
    elements: list[StructuredElement] = []
    for match in _LIST_RUN.finditer(text):
        block = match.group(0).rstrip("\n")
        start = match.start()
        end = start + len(block)
        if _overlaps(spans, start, end):
            continue
        lines = block.split("\n")
        first_marker = _LIST_MARKER.match(lines[0])
        ordered = bool(first_marker and first_marker.group(1)[0].isdigit())
        items = [_LIST_MARKER.sub("", line, count=1).strip() for line in lines]
        kind = "Ordered" if ordered else "Unordered"
        elements.append(
            StructuredElement(
                type=StructureType.LIST,
                caption=f"{kind} list ({len(items)} items)",
                data={"ordered": ordered, "items": items},
                start=start,
                end=end,
            )
        )
    return elements


def table_elements(tables: list[TableData]) -> list[StructuredElement]:
    """Table elements built from reader-supplied grids; offsets are unknown."""
    elements: list[StructuredElement] = []
    for table in tables:
        rows = table_rows_as_dicts(table)
        if not rows:
            continue
        caption = f"Table ({len(rows)} rows)"
        if table.page_number is not None:
            caption += f", page {table.page_number}"
        elements.append(
            StructuredElement(
                type=StructureType.TABLE,
                caption=caption,
                data={"headers": list(rows[0].keys()), "rows": rows},
                start=0,
                end=0,
            )
        )
    return elements


def extract_structures(
    text: str, tables: list[TableData] | None = None
) -> list[StructuredElement]:
    """Source-table elements first, then text-scanned elements in offset order."""
    spans = code_spans(text)
    scanned = [
        *extract_code_blocks(text),
        *extract_tables(text, spans),
        *extract_lists(text, spans),
    ]
    scanned.sort(key=lambda element: (element.start, element.end))
    return [*table_elements(tables or []), *scanned]


# ------------------------------------------------------------------
# Sections
# ------------------------------------------------------------------

def build_sections(text: str) -> list[Section]:
    """Split *text* into heading-delimited sections.

    Each heading opens a section that runs to the next heading (or the end
    of the text), so sections are contiguous and cover
    ``[first heading, len(text))``.
    """
    spans = code_spans(text)
    headings = [
        match for match in _HEADING.finditer(text) if not _overlaps(spans, match.start(), match.end())
    ]
    sections: list[Section] = []
    for index, match in enumerate(headings):
        start = match.start()
        end = headings[index + 1].start() if index + 1 < len(headings) else len(text)
        sections.append(
            Section(
                id=f"section_{index + 1}",
                title=match.group(2).strip(),
                level=len(match.group(1)),
                start=start,
                end=end,
                content=text[start:end],
            )
        )
    return sections
