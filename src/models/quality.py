"""RAG quality report models.

One :class:`RAGQualityReport` is produced per evaluated chunk set.  It holds
six independent metric records, an optional coverage record (only when the
pre-chunking source text was supplied), the weighted composite, and an
ordered list of recommendations.  Reports are regenerated from scratch for
every evaluation.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _score() -> Any:
    return Field(default=0.0, ge=0.0, le=1.0)


class SemanticCompletenessMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    complete_sentence_ratio: float = _score()
    complete_thought_ratio: float = _score()
    orphaned_fragment_ratio: float = _score()
    boundary_score: float = _score()
    overall_score: float = _score()


class ContextPreservationMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    overlap_quality: float = _score()
    continuity_score: float = _score()
    reference_preservation: float = _score()
    context_window_score: float = _score()
    overall_score: float = _score()


class InformationDensityMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    token_density: float = _score()
    redundancy_ratio: float = _score()
    unique_term_ratio: float = _score()
    information_entropy: float = _score()
    overall_score: float = _score()


class StructuralIntegrityMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    preserved_headers: int = 0
    preserved_lists: int = 0
    preserved_code_blocks: int = 0
    preserved_tables: int = 0
    broken_structures: int = 0
    broken_structure_ratio: float = _score()
    has_broken_structure: bool = False
    overall_score: float = _score()


class RetrievalReadinessMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    self_containment: float = _score()
    keyword_richness: float = _score()
    summary_quality: float = _score()
    query_match_potential: float = _score()
    overall_score: float = _score()


class BoundaryQualityMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    clean_start_ratio: float = _score()
    clean_end_ratio: float = _score()
    transition_quality: float = _score()
    overall_score: float = _score()


class ContentCoverageMetrics(BaseModel):
    """Coverage of the original text by the chunk set.

    ``near_duplicate_ratio`` is informational and does not feed
    ``overall_score``.
    """

    model_config = ConfigDict(frozen=True)

    coverage_ratio: float = Field(default=0.0, ge=0.0, description="May exceed 1 with overlap.")
    missing_section_ratio: float = _score()
    duplication_ratio: float = _score()
    near_duplicate_ratio: float = _score()
    overall_score: float = _score()


class RAGQualityReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_chunks: int = Field(default=0, ge=0)
    composite_score: float = _score()
    semantic_completeness: SemanticCompletenessMetrics = Field(
        default_factory=SemanticCompletenessMetrics
    )
    context_preservation: ContextPreservationMetrics = Field(
        default_factory=ContextPreservationMetrics
    )
    information_density: InformationDensityMetrics = Field(
        default_factory=InformationDensityMetrics
    )
    structural_integrity: StructuralIntegrityMetrics = Field(
        default_factory=StructuralIntegrityMetrics
    )
    retrieval_readiness: RetrievalReadinessMetrics = Field(
        default_factory=RetrievalReadinessMetrics
    )
    boundary_quality: BoundaryQualityMetrics = Field(default_factory=BoundaryQualityMetrics)
    content_coverage: ContentCoverageMetrics | None = None
    recommendations: list[str] = Field(default_factory=list)


class StrategyComparison(BaseModel):
    """Reports for several chunkings of the same document, keyed by strategy."""

    model_config = ConfigDict(frozen=True)

    reports: dict[str, RAGQualityReport] = Field(default_factory=dict)
    best_strategy: str | None = None
