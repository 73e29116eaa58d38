"""Raw extraction models: the input contract of the refinement pipeline.

An extraction reader (PDF, DOCX, HTML, plain text...) produces exactly one
:class:`RawContent` per input file.  Everything downstream -- refinement,
chunking, quality analysis -- treats it as read-only.  All models use
frozen config so a stage can never mutate the record it was handed.

Besides the plain ``text`` stream, a reader may attach structural hints:

    - ``tables``  -- :class:`TableData` grids with optional headers/alignment
    - ``blocks``  -- classified :class:`TextBlock` units (headings, list items...)
    - ``images``  -- :class:`ImageInfo` records with page/position properties

When blocks or tables are present the refiner rebuilds markdown from them
in document order instead of trusting the flat text.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BlockType(str, Enum):
    """Classification of a raw text block."""

    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST_ITEM = "list_item"
    CODE_BLOCK = "code_block"
    QUOTE = "quote"
    HEADER = "header"
    FOOTER = "footer"
    CAPTION = "caption"
    TOC_ENTRY = "toc_entry"
    NOTE = "note"


class TableAlignment(str, Enum):
    """Horizontal alignment of a table column."""

    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"
    JUSTIFY = "justify"


class BoundingBox(BaseModel):
    """Page-space rectangle of a block.

    Coordinates follow the PDF convention: origin at the bottom-left, so a
    larger ``top`` means higher on the page.  Coordinates must be finite.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    top: float = Field(description="Y coordinate of the upper edge.")
    left: float = 0.0
    bottom: float | None = None
    right: float | None = None


class FileMetadata(BaseModel):
    """File identity of the extracted document."""

    model_config = ConfigDict(frozen=True)

    file_name: str = Field(default="", description="Base file name, e.g. ``report.pdf``.")
    file_path: str | None = Field(default=None, description="Full path when read from disk.")
    extension: str = Field(default="", description="File extension including the dot.")
    size: int = Field(default=0, ge=0, description="File size in bytes.")
    created_at: datetime | None = None
    modified_at: datetime | None = None


class TableData(BaseModel):
    """A table grid extracted from the source document.

    ``cells`` may be ragged; the column count is always taken as the widest
    row.  ``plain_text_fallback`` is used when the grid itself is empty
    (e.g. the reader detected a table but could not split its cells).
    """

    model_config = ConfigDict(frozen=True)

    cells: list[list[str]] = Field(default_factory=list, description="Rows x columns.")
    headers: list[str] | None = Field(
        default=None, description="Explicit column names, if the reader found them."
    )
    has_header: bool = Field(
        default=False, description="Treat the first row of ``cells`` as the header row."
    )
    column_alignments: list[TableAlignment] | None = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    needs_llm_assist: bool = Field(
        default=False, description="Set by readers when extraction confidence is low."
    )
    page_number: int | None = None
    plain_text_fallback: str = ""
    order: int = Field(default=0, description="Sequence index within the document.")
    location: BoundingBox | None = None

    @property
    def column_count(self) -> int:
        if not self.cells:
            return 0
        return max(len(row) for row in self.cells)

    def position_key(self) -> tuple[int, int, float, int]:
        return _position_key(self.page_number, self.location, self.order)


class TextBlock(BaseModel):
    """A classified unit of raw content (paragraph, heading, list item...)."""

    model_config = ConfigDict(frozen=True)

    content: str
    type: BlockType = BlockType.PARAGRAPH
    heading_level: int | None = Field(
        default=None, description="1-6; only meaningful for headings."
    )
    list_level: int = Field(default=0, ge=0, description="Nesting depth for list items.")
    is_ordered_list: bool = False
    page_number: int | None = None
    order: int = Field(default=0, description="Monotonic sequence index.")
    location: BoundingBox | None = None

    def position_key(self) -> tuple[int, int, float, int]:
        return _position_key(self.page_number, self.location, self.order)


class ImageInfo(BaseModel):
    """An image found in the document.

    Page and geometry hints live in ``properties`` because readers disagree
    on what they can provide (``PageNumber``, ``Width``, ``Height``,
    ``BoundsBottom``).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    mime_type: str = "image/png"
    data: bytes | None = None
    reference: str | None = Field(default=None, description="External URL or path.")
    caption: str = ""
    position: int = Field(default=0, description="Ordinal position in the document.")
    properties: dict[str, str] = Field(default_factory=dict)

    @property
    def page_number(self) -> int | None:
        return _to_int(self.properties.get("PageNumber"))

    def position_key(self) -> tuple[int, int, float, int]:
        top = _to_float(self.properties.get("BoundsBottom"))
        location = BoundingBox(top=top) if top is not None else None
        return _position_key(self.page_number, location, self.position)


class RawContent(BaseModel):
    """Immutable extraction result for one input file.

    ``text`` is never ``None``; an empty document is represented by ``""``.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default="", description="Identifier referenced by the refined record.")
    text: str = ""
    tables: list[TableData] = Field(default_factory=list)
    blocks: list[TextBlock] = Field(default_factory=list)
    images: list[ImageInfo] = Field(default_factory=list)
    file: FileMetadata = Field(default_factory=FileMetadata)
    warnings: list[str] = Field(default_factory=list)

    @property
    def has_structured_data(self) -> bool:
        return bool(self.tables or self.blocks)


# ---------------------------------------------------------------------------
# Position helpers
# ---------------------------------------------------------------------------

def _position_key(
    page: int | None, location: BoundingBox | None, order: int
) -> tuple[int, int, float, int]:
    # Unknown pages sort first.  On a page, items without a location keep their
    # ordinal order ahead of located ones; a larger Y is higher so it is negated.
    if location is None:
        return (page or 0, 0, 0.0, order)
    return (page or 0, 1, -location.top, order)


def _to_int(value: str | None) -> int | None:
    number = _to_float(value)
    return int(number) if number is not None else None


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None
