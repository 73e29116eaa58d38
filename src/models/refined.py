"""Refinement models: options, the refined document, and its quality record.

:class:`RefinedContent` is produced once per refinement call by
:class:`~src.services.refinement.refiner.DocumentRefiner` and never mutated
afterwards.  It carries the normalized markdown text plus two derived
views of that text -- heading-delimited :class:`Section` spans and typed
:class:`StructuredElement` records (code, tables, lists).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RefineOptions(BaseModel):
    """Independently toggleable refinement steps."""

    model_config = ConfigDict(frozen=True)

    clean_noise: bool = Field(
        default=True,
        description="Strip artificial 'Paragraph N' headings and image placeholder lines.",
    )
    build_sections: bool = Field(
        default=True,
        description="Promote numbered section markers to headings and build the section list.",
    )
    convert_tables_to_markdown: bool = True
    convert_blocks_to_markdown: bool = True
    normalize_markdown_structure: bool = True
    extract_structures: bool = True
    normalize_whitespace: bool = True
    use_llm: bool = Field(
        default=False,
        description="Allow an external markdown converter when no structured data exists.",
    )
    remove_headers_footers: bool = False
    remove_page_numbers: bool = False
    include_image_placeholders: bool = True


class StructureType(str, Enum):
    CODE = "code"
    TABLE = "table"
    LIST = "list"


class StructuredElement(BaseModel):
    """A code block, table or list lifted out of the text as typed data.

    ``data`` shape depends on ``type``:

    - code:  ``{"language": str, "content": str}``
    - table: ``{"rows": list[dict[str, str]]}``
    - list:  ``{"ordered": bool, "items": list[str]}``

    ``start``/``end`` are ``(0, 0)`` when the element came from a source
    table whose offsets are not known after conversion.
    """

    model_config = ConfigDict(frozen=True)

    type: StructureType
    caption: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    start: int = Field(default=0, ge=0)
    end: int = Field(default=0, ge=0)


class Section(BaseModel):
    """A heading-delimited span of the refined text."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    level: int = Field(ge=1, le=6, description="Markdown heading depth.")
    start: int = Field(ge=0, description="Offset of the heading line.")
    end: int = Field(ge=0, description="Offset of the next heading, or text length.")
    content: str = ""


class DocumentMetadata(BaseModel):
    """Descriptive metadata derived from the source file."""

    model_config = ConfigDict(frozen=True)

    file_name: str = ""
    file_path: str | None = None
    file_type: str = Field(default="", description="Upper-case extension without the dot.")
    size: int = 0
    title: str = ""
    created_at: datetime | None = None
    modified_at: datetime | None = None


class RefinementQuality(BaseModel):
    """Heuristic scores describing how the refinement went."""

    model_config = ConfigDict(frozen=True)

    original_length: int = 0
    refined_length: int = 0
    structure_score: float = Field(default=0.5, ge=0.0, le=1.0)
    cleanup_score: float = Field(default=0.5, ge=0.0, le=1.0)
    retention_score: float = Field(default=1.0, ge=0.0, le=1.0)
    confidence_score: float = Field(default=0.75, ge=0.0, le=1.0)

    @property
    def overall_score(self) -> float:
        return (self.structure_score + self.cleanup_score + self.retention_score) / 3.0


class RefinementInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    refiner_type: str = "DocumentRefiner"
    used_llm: bool = False
    duration_ms: float = 0.0
    steps_applied: list[str] = Field(default_factory=list)


class RefinedContent(BaseModel):
    """The cleaned, normalized markdown representation of one document."""

    model_config = ConfigDict(frozen=True)

    raw_id: str = Field(default="", description="Back-reference to the RawContent id.")
    text: str = ""
    sections: list[Section] = Field(default_factory=list)
    structures: list[StructuredElement] = Field(default_factory=list)
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    quality: RefinementQuality = Field(default_factory=RefinementQuality)
    info: RefinementInfo = Field(default_factory=RefinementInfo)
    warnings: list[str] = Field(default_factory=list)
