"""Structured-to-markdown conversion.

When a reader supplies classified :class:`~src.models.raw.TextBlock` units
and :class:`~src.models.raw.TableData` grids, the refiner rebuilds the
document body from them instead of trusting the flat text stream.

Blocks, tables and images are merged with **one** sort over their shared
``position_key()`` projection -- ``(page, located, -top, order)`` -- so images land
where they appeared on the page rather than piling up at the end.  PDF
coordinates put the origin at the bottom-left, hence the negated ``top``.
"""

from __future__ import annotations

from typing import Union

import structlog

from src.models.raw import (
    BlockType,
    ImageInfo,
    RawContent,
    TableAlignment,
    TableData,
    TextBlock,
)
from src.utils.cancellation import CancellationToken, check_cancelled

logger = structlog.get_logger(logger_name=__name__)

ContentItem = Union[TextBlock, TableData, ImageInfo]

_ALIGNMENT_MARKERS: dict[TableAlignment, str] = {
    TableAlignment.LEFT: ":---",
    TableAlignment.RIGHT: "---:",
    TableAlignment.CENTER: ":---:",
    TableAlignment.JUSTIFY: ":---:",
}


# ------------------------------------------------------------------
# Tables
# ------------------------------------------------------------------

def escape_cell(value: str) -> str:
    """Escape pipes and flatten line breaks so a value fits in one table cell."""
    return value.replace("\r", "").replace("\n", " ").replace("|", "\\|").strip()


def table_to_markdown(table: TableData) -> str:
    """Render *table* as a GitHub-flavoured markdown table.

    Headers come from ``table.headers`` when present, else the first row
    when ``has_header`` is set, else synthesized ``Col1..ColN`` labels.  The
    output has exactly ``data rows + 2`` pipe lines, optionally followed by
    an HTML comment flagging low extraction confidence.

    Returns ``plain_text_fallback`` when the grid has no cells.
    """
    if not table.cells:
        return table.plain_text_fallback.strip()

    column_count = table.column_count
    if table.headers:
        headers = list(table.headers)
        data_rows = table.cells
    elif table.has_header:
        headers = list(table.cells[0])
        data_rows = table.cells[1:]
    else:
        headers = [f"Col{i + 1}" for i in range(column_count)]
        data_rows = table.cells

    headers = (headers + [f"Col{i + 1}" for i in range(len(headers), column_count)])[
        :column_count
    ]

    alignments = list(table.column_alignments or [])
    separators = [
        _ALIGNMENT_MARKERS.get(alignments[i], "---") if i < len(alignments) else "---"
        for i in range(column_count)
    ]

    lines = [
        _render_row(headers),
        "| " + " | ".join(separators) + " |",
    ]
    for row in data_rows:
        padded = (list(row) + [""] * column_count)[:column_count]
        lines.append(_render_row(padded))

    if table.needs_llm_assist:
        lines.append(
            f"<!-- Table confidence: {table.confidence:.2f} - may need verification -->"
        )
    return "\n".join(lines)


def _render_row(cells: list[str]) -> str:
    return "| " + " | ".join(escape_cell(c) for c in cells) + " |"


def table_rows_as_dicts(table: TableData) -> list[dict[str, str]]:
    """Return the data rows of *table* keyed by (resolved) header names."""
    if not table.cells:
        return []
    if table.headers:
        headers, rows = list(table.headers), table.cells
    elif table.has_header:
        headers, rows = list(table.cells[0]), table.cells[1:]
    else:
        headers, rows = [], table.cells
    width = table.column_count
    headers = headers + [f"Col{i + 1}" for i in range(len(headers), width)]
    return [
        {headers[i]: (row[i] if i < len(row) else "") for i in range(width)} for row in rows
    ]


# ------------------------------------------------------------------
# Blocks and images
# ------------------------------------------------------------------

def block_to_markdown(block: TextBlock) -> str:
    """Render one classified block as markdown according to its type."""
    content = block.content.strip()
    if not content:
        return ""

    if block.type is BlockType.HEADING:
        level = min(6, max(1, block.heading_level or 1))
        return f"{'#' * level} {' '.join(content.split())}"
    if block.type is BlockType.LIST_ITEM:
        marker = "1." if block.is_ordered_list else "-"
        return f"{'  ' * block.list_level}{marker} {content}"
    if block.type is BlockType.CODE_BLOCK:
        return f"```\n{block.content.strip(chr(10))}\n```"
    if block.type is BlockType.QUOTE:
        return "\n".join(f"> {line}" for line in content.split("\n"))
    if block.type in (BlockType.HEADER, BlockType.FOOTER):
        # "--" would terminate the comment early.
        return f"<!-- {block.type.value}: {content.replace('--', '- -')} -->"
    if block.type is BlockType.CAPTION:
        return f"*{content}*"
    if block.type is BlockType.NOTE:
        return f"> **Note:** {content}"
    return content


def image_to_markdown(
    image: ImageInfo, description: str | None = None, include_placeholder: bool = True
) -> str:
    """Render an image placeholder, with extracted text quoted underneath."""
    parts: list[str] = []
    if include_placeholder or description:
        target = image.reference or f"embedded:{image.id}"
        parts.append(f"![{escape_cell(image.caption)}]({target})")
    if description and description.strip():
        parts.append("\n".join(f"> {line}" for line in description.strip().split("\n")))
    return "\n\n".join(parts)


# ------------------------------------------------------------------
# Document assembly
# ------------------------------------------------------------------

def build_markdown(
    raw: RawContent,
    convert_blocks: bool = True,
    convert_tables: bool = True,
    image_descriptions: dict[str, str] | None = None,
    include_image_placeholders: bool = True,
    cancel: CancellationToken | None = None,
) -> str:
    """Assemble a markdown body from the structured parts of *raw*.

    When blocks are not converted the flat ``raw.text`` becomes the body and
    tables/images follow it in position order.
    """
    descriptions = image_descriptions or {}
    items: list[ContentItem] = []
    if convert_blocks:
        items.extend(raw.blocks)
    if convert_tables:
        items.extend(raw.tables)
    items.extend(raw.images)

    ordered = sorted(items, key=lambda item: item.position_key())

    rendered: list[tuple[str, bool]] = []
    if not (convert_blocks and raw.blocks) and raw.text.strip():
        rendered.append((raw.text.strip(), False))

    for item in ordered:
        check_cancelled(cancel, stage="refinement")
        if isinstance(item, TextBlock):
            text = block_to_markdown(item)
            is_list = item.type is BlockType.LIST_ITEM
        elif isinstance(item, TableData):
            text = table_to_markdown(item)
            is_list = False
        else:
            text = image_to_markdown(
                item, descriptions.get(item.id), include_image_placeholders
            )
            is_list = False
        if text:
            rendered.append((text, is_list))

    logger.debug(
        "markdown_assembled",
        blocks=len(raw.blocks) if convert_blocks else 0,
        tables=len(raw.tables) if convert_tables else 0,
        images=len(raw.images),
    )
    return _join_rendered(rendered)


def _join_rendered(rendered: list[tuple[str, bool]]) -> str:
    # Consecutive list items stay on adjacent lines so they read as one list.
    out: list[str] = []
    previous_is_list = False
    for index, (text, is_list) in enumerate(rendered):
        if index > 0:
            out.append("\n" if (is_list and previous_is_list) else "\n\n")
        out.append(text)
        previous_is_list = is_list
    return "".join(out)
