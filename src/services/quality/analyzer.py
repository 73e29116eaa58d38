"""RAG quality analysis for a chunk set.

Scores a list of :class:`~src.models.chunk.DocumentChunk` along six
independent dimensions, each computed only from chunk content and order:

==========================  ======  =========================================
Metric                      Weight  Looks at
==========================  ======  =========================================
Semantic completeness       0.25    complete sentences/thoughts, orphans
Context preservation        0.20    overlap, discourse markers, pronouns
Information density         0.15    content words, redundancy, entropy
Structural integrity        0.15    headers, lists, fences, tables
Retrieval readiness         0.15    self-containment, keywords, queries
Boundary quality            0.10    clean starts/ends, transitions
==========================  ======  =========================================

An optional content-coverage record compares the chunks against the
pre-chunking text.  The composite is the weighted mean of the six overall
scores, and threshold checks produce an ordered list of recommendations.

Analysis never raises on chunk content: empty or whitespace-only chunks
simply contribute 0 to the affected sub-scores.
"""

from __future__ import annotations

import asyncio
import math
import re
from collections import Counter
from itertools import combinations

import structlog
from rapidfuzz import fuzz

from src.models.chunk import DocumentChunk
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
from src.services.quality import text_metrics as tm
from src.utils.scoring import calculate_weighted_score, clamp_score, safe_ratio

logger = structlog.get_logger(logger_name=__name__)

METRIC_WEIGHTS: dict[str, float] = {
    "semantic_completeness": 0.25,
    "context_preservation": 0.20,
    "information_density": 0.15,
    "structural_integrity": 0.15,
    "retrieval_readiness": 0.15,
    "boundary_quality": 0.10,
}

# Overlap checked by the context metric: at most 256 chars, at least 21.
_OVERLAP_MAX = 256
_OVERLAP_MIN = 21
_EXPECTED_OVERLAP_CAP = 128
# Tuning constant with no derivation; kept for score compatibility.
_SENTENCE_BOUNDARY_BONUS = 1.2
_CONTEXT_WINDOW = 2
_REDUNDANT_SIMILARITY = 0.7
_NEAR_DUPLICATE_CUTOFF = 95

_HEADER = re.compile(r"^#{1,6}\s+.+$|^.+\n[=-]+$", re.MULTILINE)
_LIST_ITEM = re.compile(r"^[ \t]*(?:[-*+]|\d+\.)[ \t]+\S", re.MULTILINE)
_COMPLETE_FENCE = re.compile(r"```[\s\S]*?```")
_FENCE_LINE = re.compile(r"^[ \t]*```", re.MULTILINE)
_TABLE = re.compile(r"\|.+\|.*\n\|[-:\s|]+\|")
_WH_WORD = re.compile(r"\b(?:what|who|where|when|why|how|which)\b", re.IGNORECASE)
_DEFINITION = re.compile(r"\bis\b.*\b(?:defined as|refers to|means)\b", re.IGNORECASE)
_PROPER_NOUN = re.compile(r"\b[A-Z][a-z]+\b")
_NUMBER = re.compile(r"\b\d+\b")

EMPTY_RECOMMENDATION = "No chunks were produced. Check that the document contains extractable text."
SATISFACTORY_RECOMMENDATION = (
    "Quality metrics are satisfactory. Current configuration is well-optimized for RAG."
)


class RAGQualityAnalyzer:
    """Computes a :class:`RAGQualityReport` for a chunk set.

    The analyzer is stateless; one instance can serve any number of
    concurrent evaluations.
    """

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze(
        self, chunks: list[DocumentChunk], original_text: str | None = None
    ) -> RAGQualityReport:
        """Evaluate *chunks*; add a coverage record when *original_text* is given."""
        texts = [chunk.content for chunk in chunks]
        if not texts:
            return _empty_report()
        return self._compose(
            texts,
            semantic=semantic_completeness(texts),
            context=context_preservation(texts),
            density=information_density(texts),
            structure=structural_integrity(texts),
            retrieval=retrieval_readiness(texts),
            boundary=boundary_quality(texts),
            original_text=original_text,
        )

    async def analyze_async(
        self, chunks: list[DocumentChunk], original_text: str | None = None
    ) -> RAGQualityReport:
        """Like :meth:`analyze`, computing the six metrics concurrently."""
        texts = [chunk.content for chunk in chunks]
        if not texts:
            return _empty_report()
        semantic, context, density, structure, retrieval, boundary = await asyncio.gather(
            asyncio.to_thread(semantic_completeness, texts),
            asyncio.to_thread(context_preservation, texts),
            asyncio.to_thread(information_density, texts),
            asyncio.to_thread(structural_integrity, texts),
            asyncio.to_thread(retrieval_readiness, texts),
            asyncio.to_thread(boundary_quality, texts),
        )
        return self._compose(
            texts,
            semantic=semantic,
            context=context,
            density=density,
            structure=structure,
            retrieval=retrieval,
            boundary=boundary,
            original_text=original_text,
        )

    def compare(
        self,
        results: dict[str, list[DocumentChunk]],
        original_text: str | None = None,
    ) -> StrategyComparison:
        """Analyze one chunk set per strategy and pick the highest composite."""
        reports = {name: self.analyze(chunks, original_text) for name, chunks in results.items()}
        best = max(reports, key=lambda name: reports[name].composite_score) if reports else None
        logger.info(
            "strategies_compared",
            strategies=list(reports),
            best_strategy=best,
            scores={name: round(r.composite_score, 3) for name, r in reports.items()},
        )
        return StrategyComparison(reports=reports, best_strategy=best)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def _compose(
        self,
        texts: list[str],
        *,
        semantic: SemanticCompletenessMetrics,
        context: ContextPreservationMetrics,
        density: InformationDensityMetrics,
        structure: StructuralIntegrityMetrics,
        retrieval: RetrievalReadinessMetrics,
        boundary: BoundaryQualityMetrics,
        original_text: str | None,
    ) -> RAGQualityReport:
        composite = calculate_weighted_score(
            [
                semantic.overall_score,
                context.overall_score,
                density.overall_score,
                structure.overall_score,
                retrieval.overall_score,
                boundary.overall_score,
            ],
            list(METRIC_WEIGHTS.values()),
        )
        coverage = content_coverage(texts, original_text) if original_text is not None else None

        report = RAGQualityReport(
            total_chunks=len(texts),
            composite_score=composite,
            semantic_completeness=semantic,
            context_preservation=context,
            information_density=density,
            structural_integrity=structure,
            retrieval_readiness=retrieval,
            boundary_quality=boundary,
            content_coverage=coverage,
        )
        report = report.model_copy(update={"recommendations": generate_recommendations(report)})
        logger.debug(
            "quality_analyzed",
            total_chunks=report.total_chunks,
            composite_score=round(composite, 3),
            recommendations=len(report.recommendations),
        )
        return report


def _empty_report() -> RAGQualityReport:
    return RAGQualityReport(total_chunks=0, recommendations=[EMPTY_RECOMMENDATION])


# ----------------------------------------------------------------------
# Metrics
# ----------------------------------------------------------------------

def semantic_completeness(texts: list[str]) -> SemanticCompletenessMetrics:
    if not texts:
        return SemanticCompletenessMetrics()
    total_sentences = complete_sentences = thoughts = orphans = 0
    boundary = 0.0
    for text in texts:
        sentences = tm.split_sentences(text)
        total_sentences += len(sentences)
        complete_sentences += sum(1 for s in sentences if tm.is_complete_sentence(s))
        thoughts += tm.is_complete_thought(text)
        orphans += tm.is_orphaned(text)
        boundary += tm.boundary_score(text)

    n = len(texts)
    sentence_ratio = safe_ratio(complete_sentences, total_sentences)
    thought_ratio = thoughts / n
    orphan_ratio = orphans / n
    boundary_avg = boundary / n
    return SemanticCompletenessMetrics(
        complete_sentence_ratio=clamp_score(sentence_ratio),
        complete_thought_ratio=clamp_score(thought_ratio),
        orphaned_fragment_ratio=clamp_score(orphan_ratio),
        boundary_score=clamp_score(boundary_avg),
        overall_score=calculate_weighted_score(
            [sentence_ratio, thought_ratio, 1.0 - orphan_ratio, boundary_avg],
            [0.3, 0.3, 0.2, 0.2],
        ),
    )


def pair_overlap_quality(previous: str, current: str) -> float:
    """Overlap of two adjacent chunks relative to the expected overlap size."""
    size = tm.get_overlap_length(previous, current, _OVERLAP_MAX, _OVERLAP_MIN)
    expected = min(_EXPECTED_OVERLAP_CAP, min(len(previous), len(current)) / 4)
    if size == 0 or expected <= 0:
        return 0.0
    quality = min(1.0, size / expected)
    if tm.crosses_sentence_boundary(current[:size]):
        quality = min(1.0, quality * _SENTENCE_BOUNDARY_BONUS)
    return quality


def context_preservation(texts: list[str]) -> ContextPreservationMetrics:
    if not texts:
        return ContextPreservationMetrics()
    if len(texts) == 1:
        return ContextPreservationMetrics(
            overlap_quality=1.0,
            continuity_score=1.0,
            reference_preservation=1.0,
            context_window_score=1.0,
            overall_score=1.0,
        )

    pairs = list(zip(texts, texts[1:]))
    overlap = sum(pair_overlap_quality(a, b) for a, b in pairs) / len(pairs)
    continuity = sum(tm.continuity_score(b) for _, b in pairs) / len(pairs)
    references = sum(0.5 if tm.starts_with_pronoun(b) else 1.0 for _, b in pairs) / len(pairs)

    term_sets = [set(tm.extract_terms(t)) for t in texts]
    window_scores: list[float] = []
    for i, terms in enumerate(term_sets):
        if not terms:
            window_scores.append(0.0)
            continue
        window: set[str] = set()
        for j in range(max(0, i - _CONTEXT_WINDOW), min(len(texts), i + _CONTEXT_WINDOW + 1)):
            if j != i:
                window |= term_sets[j]
        window_scores.append(len(terms & window) / len(terms) if window else 1.0)
    window_score = sum(window_scores) / len(window_scores)

    return ContextPreservationMetrics(
        overlap_quality=clamp_score(overlap),
        continuity_score=clamp_score(continuity),
        reference_preservation=clamp_score(references),
        context_window_score=clamp_score(window_score),
        overall_score=calculate_weighted_score(
            [overlap, continuity, references, window_score], [0.3, 0.3, 0.2, 0.2]
        ),
    )


def information_density(texts: list[str]) -> InformationDensityMetrics:
    all_terms: list[str] = []
    densities: list[float] = []
    redundancies: list[float] = []
    uniqueness: list[float] = []
    for text in texts:
        terms = tm.extract_terms(text)
        all_terms.extend(terms)
        densities.append(tm.token_density(text))
        uniqueness.append(safe_ratio(len(set(terms)), len(terms)))
        redundancies.append(_sentence_redundancy(text))

    if not all_terms:
        return InformationDensityMetrics()

    n = len(texts)
    density = sum(densities) / n
    redundancy = sum(redundancies) / n
    unique = sum(uniqueness) / n
    entropy = _normalized_entropy(all_terms)
    return InformationDensityMetrics(
        token_density=clamp_score(density),
        redundancy_ratio=clamp_score(redundancy),
        unique_term_ratio=clamp_score(unique),
        information_entropy=clamp_score(entropy),
        overall_score=calculate_weighted_score(
            [density, 1.0 - redundancy, unique, entropy], [0.3, 0.3, 0.2, 0.2]
        ),
    )


def _sentence_redundancy(text: str) -> float:
    term_sets = [set(tm.extract_terms(s)) for s in tm.split_sentences(text)]
    if len(term_sets) < 2:
        return 0.0
    pairs = list(combinations(term_sets, 2))
    similar = (tm.jaccard(a, b) for a, b in pairs)
    return sum(s for s in similar if s > _REDUNDANT_SIMILARITY) / len(pairs)


def _normalized_entropy(terms: list[str]) -> float:
    counts = Counter(terms)
    if len(counts) <= 1:
        return 0.0
    total = len(terms)
    entropy = -sum((c / total) * math.log2(c / total) for c in counts.values())
    return entropy / math.log2(len(counts))


def structural_integrity(texts: list[str]) -> StructuralIntegrityMetrics:
    if not texts:
        return StructuralIntegrityMetrics()
    headers = lists = code_blocks = tables = broken = 0
    for text in texts:
        headers += len(_HEADER.findall(text))
        list_items = len(_LIST_ITEM.findall(text))
        if list_items >= 2:
            lists += 1
        code_blocks += len(_COMPLETE_FENCE.findall(text))
        tables += len(_TABLE.findall(text))
        if len(_FENCE_LINE.findall(text)) % 2 == 1 or list_items == 1:
            broken += 1

    preserved = headers + lists + code_blocks + tables
    broken_ratio = broken / len(texts)
    detected = preserved + broken
    if detected == 0:
        score = 1.0 - broken_ratio
    else:
        score = (preserved - broken) / detected

    return StructuralIntegrityMetrics(
        preserved_headers=headers,
        preserved_lists=lists,
        preserved_code_blocks=code_blocks,
        preserved_tables=tables,
        broken_structures=broken,
        broken_structure_ratio=clamp_score(broken_ratio),
        has_broken_structure=broken > 0,
        overall_score=clamp_score(score),
    )


def retrieval_readiness(texts: list[str]) -> RetrievalReadinessMetrics:
    if not texts:
        return RetrievalReadinessMetrics()
    self_contained = richness = summary = query = 0.0
    for text in texts:
        terms = tm.extract_terms(text)
        unique = set(terms)
        if tm.is_complete_thought(text) and not tm.starts_with_pronoun(text):
            self_contained += 1
        if len(unique) > 10 and safe_ratio(len(unique), len(terms)) > 0.2:
            richness += 1
        summary += _summary_quality(text)
        query += _query_match_potential(text, len(terms))

    n = len(texts)
    values = [self_contained / n, richness / n, summary / n, query / n]
    return RetrievalReadinessMetrics(
        self_containment=clamp_score(values[0]),
        keyword_richness=clamp_score(values[1]),
        summary_quality=clamp_score(values[2]),
        query_match_potential=clamp_score(values[3]),
        overall_score=calculate_weighted_score(values, [0.3, 0.2, 0.25, 0.25]),
    )


def _summary_quality(text: str) -> float:
    sentences = tm.split_sentences(text)
    if not sentences:
        return 0.0
    first = sentences[0]
    score = 0.0
    if 20 <= len(first) <= 200:
        score += 0.3
    if tm.is_complete_sentence(first):
        score += 0.3
    if len(sentences) == 1:
        return score + 0.4
    first_terms = set(tm.extract_terms(first))
    rest_terms = set(tm.extract_terms(" ".join(sentences[1:])))
    overlap = safe_ratio(len(first_terms & rest_terms), len(first_terms))
    return min(1.0, score + 0.4 * overlap)


def _query_match_potential(text: str, term_count: int) -> float:
    hits = [
        bool(_WH_WORD.search(text)),
        bool(_DEFINITION.search(text)),
        term_count > 20,
        len(_PROPER_NOUN.findall(text)) > 2,
        len(_NUMBER.findall(text)) > 2,
    ]
    return min(1.0, 0.2 * sum(hits))


def boundary_quality(texts: list[str]) -> BoundaryQualityMetrics:
    if not texts:
        return BoundaryQualityMetrics()
    if len(texts) == 1:
        return BoundaryQualityMetrics(
            clean_start_ratio=1.0,
            clean_end_ratio=1.0,
            transition_quality=1.0,
            overall_score=1.0,
        )

    n = len(texts)
    clean_start = sum(tm.is_clean_start(t) for t in texts) / n
    clean_end = sum(tm.is_clean_end(t) for t in texts) / n
    transitions = [
        0.4 * pair_overlap_quality(a, b)
        + 0.3 * tm.continuity_score(b)
        + 0.15 * tm.is_clean_end(a)
        + 0.15 * tm.is_clean_start(b)
        for a, b in zip(texts, texts[1:])
    ]
    transition = sum(transitions) / len(transitions)
    return BoundaryQualityMetrics(
        clean_start_ratio=clamp_score(clean_start),
        clean_end_ratio=clamp_score(clean_end),
        transition_quality=clamp_score(transition),
        overall_score=calculate_weighted_score(
            [clean_start, clean_end, transition], [0.35, 0.35, 0.30]
        ),
    )


def content_coverage(texts: list[str], original_text: str) -> ContentCoverageMetrics:
    original_length = len(original_text)
    if original_length == 0 or not texts:
        return ContentCoverageMetrics()

    n = len(texts)
    combined = sum(len(t) for t in texts) + n - 1
    coverage = combined / original_length

    original_sentences = len(tm.split_sentences(original_text))
    chunk_sentences = sum(len(tm.split_sentences(t)) for t in texts)
    missing = clamp_score(1.0 - safe_ratio(chunk_sentences, original_sentences, default=1.0))

    counts = Counter(t.strip() for t in texts)
    duplicated = sum(count for count in counts.values() if count > 1)
    duplication = duplicated / n

    near = set()
    for i, j in combinations(range(n), 2):
        a, b = texts[i].strip(), texts[j].strip()
        if a != b and fuzz.ratio(a, b, score_cutoff=_NEAR_DUPLICATE_CUTOFF):
            near.update((i, j))
    near_ratio = len(near) / n

    return ContentCoverageMetrics(
        coverage_ratio=coverage,
        missing_section_ratio=missing,
        duplication_ratio=clamp_score(duplication),
        near_duplicate_ratio=clamp_score(near_ratio),
        overall_score=clamp_score(min(1.0, coverage) * (1.0 - missing) * (1.0 - duplication)),
    )


# ----------------------------------------------------------------------
# Recommendations
# ----------------------------------------------------------------------

def generate_recommendations(report: RAGQualityReport) -> list[str]:
    """Threshold checks in fixed order; a single satisfactory note when none trip."""
    semantic = report.semantic_completeness
    context = report.context_preservation
    density = report.information_density
    structure = report.structural_integrity
    retrieval = report.retrieval_readiness
    boundary = report.boundary_quality

    checks: list[tuple[bool, str]] = [
        (
            semantic.orphaned_fragment_ratio > 0.2,
            "High ratio of orphaned fragments detected. "
            "Consider increasing chunk size or improving boundary detection.",
        ),
        (
            semantic.complete_sentence_ratio < 0.7,
            "Many chunks lack complete sentences. "
            "Adjust chunking strategy to preserve sentence boundaries.",
        ),
        (
            context.overlap_quality < 0.3,
            "Low overlap between chunks. "
            "Increase overlap size to improve context preservation.",
        ),
        (
            context.reference_preservation < 0.5,
            "Poor reference preservation. Consider using semantic-aware chunking strategies.",
        ),
        (
            density.redundancy_ratio > 0.3,
            "High redundancy detected. Optimize chunking to reduce duplicate information.",
        ),
        (
            density.token_density < 0.5,
            "Low information density. "
            "Consider filtering or preprocessing to remove filler content.",
        ),
        (
            structure.broken_structure_ratio > 0.1,
            "Broken structures detected. "
            "Use structure-aware chunking for documents with lists, tables, or code blocks.",
        ),
        (
            retrieval.self_containment < 0.6,
            "Many chunks are not self-contained. "
            "Adjust strategy to create more independent chunks.",
        ),
        (
            retrieval.keyword_richness < 0.5,
            "Low keyword richness. Consider preprocessing to enhance searchable terms.",
        ),
        (
            boundary.transition_quality < 0.5,
            "Poor transitions between chunks. Improve boundary detection algorithms.",
        ),
        (
            report.composite_score < 0.6,
            "Overall quality below threshold. Consider using the 'semantic' chunking "
            "strategy with appropriate parameters.",
        ),
    ]
    recommendations = [message for tripped, message in checks if tripped]
    return recommendations or [SATISFACTORY_RECOMMENDATION]
