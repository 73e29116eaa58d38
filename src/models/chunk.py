"""Chunk models: strategies, chunking options, and the DocumentChunk record.

A :class:`DocumentChunk` is the unit handed to downstream indexing and
embedding.  Core identity fields (``content``, offsets, ``strategy``) are
fixed at chunk time.  Enrichment lands in :class:`ChunkAnnotations` --
named optional fields for the well-known annotations -- while ``props``
stays open for arbitrary collaborator-supplied data.

Because every model is frozen, enrichment produces *new* chunks via
``model_copy(update=...)``; nothing annotates a chunk in place.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.utils.errors import InputValidationError


class ChunkingStrategy(str, Enum):
    """Closed set of chunking strategies."""

    AUTO = "auto"
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"
    TOKEN = "token"
    SEMANTIC = "semantic"
    HIERARCHICAL = "hierarchical"

    @classmethod
    def resolve(cls, name: str | ChunkingStrategy) -> ChunkingStrategy:
        """Map a user-facing strategy name (including legacy aliases) to a member.

        Raises
        ------
        InputValidationError
            If *name* is neither a strategy nor a known alias.
        """
        if isinstance(name, ChunkingStrategy):
            return name
        key = name.strip().lower().replace("-", "_")
        if key in _STRATEGY_ALIASES:
            return _STRATEGY_ALIASES[key]
        try:
            return cls(key)
        except ValueError:
            raise InputValidationError(
                message=f"Unknown chunking strategy: {name!r}",
                stage="chunking",
            ) from None


# Legacy names kept for callers written against older strategy sets.
_STRATEGY_ALIASES: dict[str, ChunkingStrategy] = {
    "smart": ChunkingStrategy.SENTENCE,
    "intelligent": ChunkingStrategy.SEMANTIC,
    "fixedsize": ChunkingStrategy.TOKEN,
    "fixed_size": ChunkingStrategy.TOKEN,
    "pagelevel": ChunkingStrategy.PARAGRAPH,
    "page_level": ChunkingStrategy.PARAGRAPH,
}


class ChunkOptions(BaseModel):
    """Size and boundary policy for one chunking run (sizes in characters)."""

    model_config = ConfigDict(frozen=True)

    strategy: ChunkingStrategy = ChunkingStrategy.AUTO
    max_chunk_size: int = Field(default=1024, gt=0)
    min_chunk_size: int = Field(default=100, ge=0)
    overlap_size: int = Field(default=128, ge=0)
    target_chunk_size: int | None = Field(
        default=None, gt=0, description="Preferred size; defaults to max_chunk_size."
    )
    preserve_paragraphs: bool = True
    preserve_sentences: bool = True

    @model_validator(mode="after")
    def _check_sizes(self) -> ChunkOptions:
        if self.overlap_size >= self.max_chunk_size:
            raise ValueError("overlap_size must be smaller than max_chunk_size")
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError("min_chunk_size must not exceed max_chunk_size")
        return self

    @property
    def effective_target(self) -> int:
        if self.target_chunk_size is None:
            return self.max_chunk_size
        return min(self.target_chunk_size, self.max_chunk_size)


class SourceInfo(BaseModel):
    """Document-level provenance shared by every chunk of one document."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    source_type: str = ""
    file_path: str | None = None
    chunk_count: int = Field(default=0, ge=0)
    language: str = "unknown"


class ChunkAnnotations(BaseModel):
    """Well-known enrichment annotations."""

    model_config = ConfigDict(frozen=True)

    document_topic: str | None = None
    document_keywords: list[str] = Field(default_factory=list)
    summary: str | None = None
    keywords: list[str] = Field(default_factory=list)
    contextual_summary: str | None = None


class DocumentChunk(BaseModel):
    """A contiguous slice of refined document text sized for retrieval."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID) generated at chunk time.")
    index: int = Field(default=0, ge=0, description="Position in the chunk sequence.")
    content: str = Field(min_length=1)
    start_position: int = Field(default=0, ge=0)
    end_position: int = Field(default=0, ge=0)
    strategy: ChunkingStrategy = ChunkingStrategy.PARAGRAPH
    content_type: str = Field(
        default="text", description='"text", "heading", "code", "table", "list" or "mixed".'
    )
    # --- Scores: filled by ChunkService after the engine has run. ---
    quality_score: float | None = Field(default=None, ge=0.0, le=1.0)
    completeness_score: float | None = Field(default=None, ge=0.0, le=1.0)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    relevance_score: float = Field(default=0.0, ge=0.0, le=1.0)
    topic_category: str | None = None
    document_domain: str = "General"
    # --- Structure and navigation ---
    heading_path: list[str] = Field(default_factory=list)
    oversized: bool = Field(
        default=False,
        description="True when a single indivisible unit exceeded max_chunk_size.",
    )
    token_count: int = Field(default=0, ge=0, description="Approximate token count (len // 4).")
    word_count: int = Field(default=0, ge=0)
    previous_chunk_id: str | None = None
    next_chunk_id: str | None = None
    # --- Enrichment ---
    annotations: ChunkAnnotations = Field(default_factory=ChunkAnnotations)
    props: dict[str, str] = Field(
        default_factory=dict,
        description="Open-ended collaborator-supplied annotations.",
    )
    source_info: SourceInfo = Field(default_factory=SourceInfo)
