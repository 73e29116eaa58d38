"""Pipeline stage and result models.

:class:`PipelineResult` bundles everything one document run produces:
the refined document, its chunks, the quality report, and the warnings
collected along the way.  Like every docflux model it is frozen.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.models.chunk import ChunkingStrategy, DocumentChunk
from src.models.quality import RAGQualityReport
from src.models.refined import RefinedContent


class PipelineStage(str, Enum):
    """Stages of a document run, in execution order."""

    REFINEMENT = "refinement"
    CHUNKING = "chunking"
    ENHANCEMENT = "enhancement"
    ANALYSIS = "analysis"


class PipelineResult(BaseModel):
    """Output of :meth:`~src.pipeline.document_pipeline.DocumentPipeline.process`."""

    model_config = ConfigDict(frozen=True)

    refined: RefinedContent
    chunks: list[DocumentChunk] = Field(default_factory=list)
    report: RAGQualityReport = Field(default_factory=RAGQualityReport)
    warnings: list[str] = Field(default_factory=list)
    strategy: ChunkingStrategy = Field(
        default=ChunkingStrategy.PARAGRAPH,
        description="Concrete strategy used; never AUTO.",
    )
    stage_durations_ms: dict[str, int] = Field(default_factory=dict)
