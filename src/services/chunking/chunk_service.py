"""Chunk service -- turns refined text into stamped DocumentChunk records.

Wraps :class:`~src.services.chunking.chunker.ChunkingEngine` with everything
the engine does not know about:

- resolving the ``auto`` strategy,
- wrapping engine failures in :class:`~src.utils.errors.ChunkingError`
  carrying the file name,
- stamping identity, navigation links, shared :class:`SourceInfo`, the
  section ``heading_path`` and per-chunk heuristic scores,
- document-level annotations (topic, top keywords, domain) copied onto
  every chunk.
"""

from __future__ import annotations

import re
import uuid
from collections import Counter
from typing import Callable

import structlog

from src.models.chunk import (
    ChunkAnnotations,
    ChunkingStrategy,
    ChunkOptions,
    DocumentChunk,
    SourceInfo,
)
from src.models.refined import RefinedContent, Section
from src.services.chunking.chunker import ChunkingEngine, RawChunk
from src.services.chunking.strategy_selector import StrategySelector
from src.services.quality.text_metrics import boundary_score, extract_terms, token_density
from src.services.refinement.structure_extractor import build_sections
from src.utils.cancellation import CancellationToken, check_cancelled
from src.utils.errors import ChunkingError, ProcessingCancelledError
from src.utils.scoring import clamp_score

logger = structlog.get_logger(logger_name=__name__)

_STAGE = "chunking"
_DOCUMENT_KEYWORDS = 5

_FENCE_LINE = re.compile(r"^[ \t]*```", re.MULTILINE)
_HEADING_LINE = re.compile(r"^#{1,6}[ \t]+\S", re.MULTILINE)
_TABLE_SEPARATOR = re.compile(r"^[ \t]*\|[-: \t|]+\|[ \t]*$", re.MULTILINE)
_LIST_LINE = re.compile(r"^[ \t]*(?:[-*+]|\d+\.)[ \t]+\S", re.MULTILINE)

# Checked in order; the first domain with a hit wins.
_DOMAIN_KEYWORDS: list[tuple[str, re.Pattern[str]]] = [
    (
        "Academic",
        re.compile(
            r"\b(?:research|study|abstract|methodology|literature|theoretical|hypothesis)\b"
        ),
    ),
    (
        "Business",
        re.compile(
            r"\b(?:business|stakeholders?|strategy|strategic|planning|timeline|milestones?|"
            r"objectives?|revenue)\b"
        ),
    ),
    (
        "Technical",
        re.compile(
            r"\b(?:api|endpoints?|database|schema|components?|function|class|method|"
            r"server|configuration)\b"
        ),
    ),
]

EngineFactory = Callable[[ChunkOptions], ChunkingEngine]


class ChunkService:
    """Produces ordered :class:`DocumentChunk` lists for one document.

    Parameters
    ----------
    engine_factory:
        Builds the engine for a given :class:`ChunkOptions`; tests inject a
        failing or recording factory here.
    """

    def __init__(self, engine_factory: EngineFactory = ChunkingEngine) -> None:
        self._engine_factory = engine_factory

    def chunk(
        self,
        content: RefinedContent | str,
        options: ChunkOptions | None = None,
        cancel: CancellationToken | None = None,
        file_name: str | None = None,
    ) -> list[DocumentChunk]:
        """Chunk refined content (or bare text).

        Returns an empty list for empty text.

        Raises
        ------
        ChunkingError
            If the engine fails; the message carries the file name.
        ProcessingCancelledError
            If *cancel* is set while chunking.
        """
        options = options or ChunkOptions()
        refined = content if isinstance(content, RefinedContent) else None
        text = refined.text if refined is not None else (content or "")
        if refined is not None:
            file_name = file_name or refined.metadata.file_name or None

        if not text.strip():
            logger.info("chunking_skipped_empty", file_name=file_name)
            return []

        strategy = options.strategy
        if strategy is ChunkingStrategy.AUTO:
            strategy = StrategySelector(options).select(text)

        try:
            raw_chunks = self._engine_factory(options).split(text, strategy, cancel)
        except ProcessingCancelledError as exc:
            raise ProcessingCancelledError(stage=_STAGE, file_name=file_name) from exc
        except Exception as exc:
            logger.error("chunking_failed", file_name=file_name, error=str(exc))
            raise ChunkingError(message=f"Chunking failed: {exc}", file_name=file_name) from exc

        chunks = self._stamp(raw_chunks, text, refined, strategy, options, file_name, cancel)
        logger.info(
            "chunks_created",
            file_name=file_name,
            strategy=strategy.value,
            num_chunks=len(chunks),
            avg_chars=sum(len(c.content) for c in chunks) // len(chunks) if chunks else 0,
        )
        return chunks

    # ------------------------------------------------------------------
    # Stamping
    # ------------------------------------------------------------------

    def _stamp(
        self,
        raw_chunks: list[RawChunk],
        text: str,
        refined: RefinedContent | None,
        strategy: ChunkingStrategy,
        options: ChunkOptions,
        file_name: str | None,
        cancel: CancellationToken | None,
    ) -> list[DocumentChunk]:
        sections = refined.sections if refined is not None and refined.sections else build_sections(text)
        metadata = refined.metadata if refined is not None else None

        source = SourceInfo(
            title=(metadata.title if metadata else "") or file_name or "",
            source_type=(metadata.file_type if metadata else "") or "text",
            file_path=metadata.file_path if metadata else None,
            chunk_count=len(raw_chunks),
        )
        annotations = ChunkAnnotations(
            document_topic=_document_topic(sections, source.title),
            document_keywords=top_keywords(text),
        )
        domain = detect_document_domain(text)
        ids = [str(uuid.uuid4()) for _ in raw_chunks]

        chunks: list[DocumentChunk] = []
        for index, raw in enumerate(raw_chunks):
            check_cancelled(cancel, _STAGE, file_name)
            path = heading_path(sections, raw.start)
            completeness = completeness_score(raw.content, options.min_chunk_size)
            relevance = token_density(raw.content)
            chunks.append(
                DocumentChunk(
                    id=ids[index],
                    index=index,
                    content=raw.content,
                    start_position=raw.start,
                    end_position=raw.end,
                    strategy=strategy,
                    content_type=classify_content(raw.content),
                    quality_score=clamp_score(
                        0.5 * completeness + 0.3 * relevance + 0.2 * boundary_score(raw.content)
                    ),
                    completeness_score=completeness,
                    importance=importance_score(raw.content, is_first=index == 0),
                    relevance_score=clamp_score(relevance),
                    topic_category=path[-1] if path else None,
                    document_domain=domain,
                    heading_path=path,
                    oversized=raw.oversized,
                    token_count=len(raw.content) // 4,
                    word_count=len(raw.content.split()),
                    previous_chunk_id=ids[index - 1] if index > 0 else None,
                    next_chunk_id=ids[index + 1] if index + 1 < len(ids) else None,
                    annotations=annotations,
                    source_info=source,
                )
            )
        return chunks


# ----------------------------------------------------------------------
# Per-chunk heuristics
# ----------------------------------------------------------------------

def completeness_score(content: str, min_size: int) -> float:
    """Fraction of four completeness factors the chunk satisfies.

    Terminal punctuation at the end, a capital/digit/``#`` at the start,
    balanced code fences, and a length of at least *min_size*.
    """
    stripped = content.strip()
    if not stripped:
        return 0.0
    factors = [
        stripped[-1] in ".!?:",
        stripped[0].isupper() or stripped[0].isdigit() or stripped[0] == "#",
        len(_FENCE_LINE.findall(stripped)) % 2 == 0,
        len(stripped) >= min_size,
    ]
    return sum(factors) / len(factors)


def importance_score(content: str, is_first: bool = False) -> float:
    score = 0.5
    if _HEADING_LINE.search(content):
        score += 0.2
    if _FENCE_LINE.search(content) or _TABLE_SEPARATOR.search(content) or _LIST_LINE.search(content):
        score += 0.1
    if is_first:
        score += 0.2
    return min(1.0, score)


def classify_content(content: str) -> str:
    """One of ``text``, ``heading``, ``code``, ``table``, ``list`` or ``mixed``."""
    kinds: list[str] = []
    if _FENCE_LINE.search(content):
        kinds.append("code")
    if _TABLE_SEPARATOR.search(content):
        kinds.append("table")
    if len(_LIST_LINE.findall(content)) >= 2:
        kinds.append("list")

    if len(kinds) > 1:
        return "mixed"
    if kinds:
        return kinds[0]
    stripped = content.strip()
    if _HEADING_LINE.match(stripped) and "\n" not in stripped:
        return "heading"
    return "text"


def heading_path(sections: list[Section], position: int) -> list[str]:
    """Titles of the headings enclosing *position*, outermost first."""
    stack: list[Section] = []
    for section in sections:
        if section.start > position:
            break
        while stack and stack[-1].level >= section.level:
            stack.pop()
        stack.append(section)
    return [section.title for section in stack]


# ----------------------------------------------------------------------
# Document-level annotations
# ----------------------------------------------------------------------

def top_keywords(text: str, limit: int = _DOCUMENT_KEYWORDS) -> list[str]:
    counts = Counter(extract_terms(text))
    return [term for term, _ in counts.most_common(limit)]


def detect_document_domain(text: str) -> str:
    """``Academic``, ``Business``, ``Technical`` or ``General`` by keyword hits."""
    lowered = text.lower()
    for domain, pattern in _DOMAIN_KEYWORDS:
        if pattern.search(lowered):
            return domain
    return "General"


def _document_topic(sections: list[Section], fallback: str) -> str | None:
    for section in sections:
        if section.level <= 2:
            return section.title
    return fallback or None
