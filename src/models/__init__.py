"""docflux domain models -- re-exports all public model classes.

The models are organized by pipeline stage:
    - raw.py        -- Extraction result consumed by the refiner
    - refined.py    -- Refinement options and the refined document
    - chunk.py      -- Chunking strategy/options and DocumentChunk
    - quality.py    -- RAG quality report and its metric records
    - completion.py -- Payloads for the optional LLM collaborators
    - pipeline.py   -- Pipeline stages and the per-document result
"""

from __future__ import annotations

from src.models.chunk import (
    ChunkAnnotations,
    ChunkingStrategy,
    ChunkOptions,
    DocumentChunk,
    SourceInfo,
)
from src.models.completion import (
    ContentSummary,
    ConversionMethod,
    ImageToTextOptions,
    ImageToTextResult,
    MarkdownConversionOptions,
    MarkdownConversionResult,
    MetadataExtractionResult,
    QualityAssessment,
    SectionInfo,
    StructureAnalysisResult,
)
from src.models.pipeline import PipelineResult, PipelineStage
from src.models.quality import (
    BoundaryQualityMetrics,
    ContentCoverageMetrics,
    ContextPreservationMetrics,
    InformationDensityMetrics,
    RAGQualityReport,
    RetrievalReadinessMetrics,
    SemanticCompletenessMetrics,
    StrategyComparison,
    StructuralIntegrityMetrics,
)
from src.models.raw import (
    BlockType,
    BoundingBox,
    FileMetadata,
    ImageInfo,
    RawContent,
    TableAlignment,
    TableData,
    TextBlock,
)
from src.models.refined import (
    DocumentMetadata,
    RefinedContent,
    RefinementInfo,
    RefinementQuality,
    RefineOptions,
    Section,
    StructuredElement,
    StructureType,
)

__all__ = [
    "BlockType",
    "BoundaryQualityMetrics",
    "BoundingBox",
    "ChunkAnnotations",
    "ChunkOptions",
    "ChunkingStrategy",
    "ContentCoverageMetrics",
    "ContentSummary",
    "ContextPreservationMetrics",
    "ConversionMethod",
    "DocumentChunk",
    "DocumentMetadata",
    "FileMetadata",
    "ImageInfo",
    "ImageToTextOptions",
    "ImageToTextResult",
    "InformationDensityMetrics",
    "MarkdownConversionOptions",
    "MarkdownConversionResult",
    "MetadataExtractionResult",
    "PipelineResult",
    "PipelineStage",
    "QualityAssessment",
    "RAGQualityReport",
    "RawContent",
    "RefineOptions",
    "RefinedContent",
    "RefinementInfo",
    "RefinementQuality",
    "RetrievalReadinessMetrics",
    "Section",
    "SectionInfo",
    "SemanticCompletenessMetrics",
    "SourceInfo",
    "StrategyComparison",
    "StructureAnalysisResult",
    "StructureType",
    "StructuredElement",
    "StructuralIntegrityMetrics",
    "TableAlignment",
    "TableData",
    "TextBlock",
]
