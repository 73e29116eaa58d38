"""Document pipeline: refine -> chunk -> (enhance) -> analyze.

Stages run strictly in order for one document, each consuming the
previous stage's frozen output.  All services are injected; the pipeline
never constructs them, so tests can swap in mocks for any stage.

Cancellation is checked between stages (and by the refiner and chunk
service inside their own loops).  A set token surfaces as
:class:`~src.utils.errors.ProcessingCancelledError` carrying the stage
that observed it.

Chunking and analysis are CPU-bound and run in a worker thread so that
:meth:`DocumentPipeline.process_batch` can overlap independent documents.
"""

from __future__ import annotations

import asyncio
import time

from src.models.chunk import ChunkingStrategy, ChunkOptions
from src.models.pipeline import PipelineResult, PipelineStage
from src.models.raw import RawContent
from src.models.refined import RefinedContent, RefineOptions
from src.services.chunking.chunk_service import ChunkService
from src.services.chunking.strategy_selector import StrategySelector
from src.services.enhancement.chunk_enhancer import ChunkEnhancer
from src.services.quality.analyzer import RAGQualityAnalyzer
from src.services.refinement.refiner import DocumentRefiner
from src.utils.cancellation import CancellationToken, check_cancelled
from src.utils.concurrency import throttled_gather
from src.utils.logging import bind_document_context, clear_document_context, get_logger


class DocumentPipeline:
    """Runs one or many documents through the full processing chain.

    Parameters
    ----------
    refiner:
        Turns ``RawContent`` into ``RefinedContent``.
    chunk_service:
        Splits refined text into stamped chunks.
    analyzer:
        Scores the chunk set against the refined text.
    enhancer:
        Optional LLM enrichment; skipped when ``None`` or disabled.
    """

    def __init__(
        self,
        refiner: DocumentRefiner,
        chunk_service: ChunkService,
        analyzer: RAGQualityAnalyzer,
        enhancer: ChunkEnhancer | None = None,
    ) -> None:
        self._refiner = refiner
        self._chunk_service = chunk_service
        self._analyzer = analyzer
        self._enhancer = enhancer
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Single document
    # ------------------------------------------------------------------

    async def process(
        self,
        raw: RawContent,
        refine_options: RefineOptions | None = None,
        chunk_options: ChunkOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> PipelineResult:
        """Process one document end to end.

        Raises
        ------
        RefinementError
            If refinement fails as a whole.
        ChunkingError
            If the chunking engine fails.
        ProcessingCancelledError
            If *cancel* is set before the run completes.
        """
        file_name = raw.file.file_name or None
        chunk_options = chunk_options or ChunkOptions()
        bind_document_context(file_name or raw.id or "unnamed")
        durations: dict[str, int] = {}
        try:
            # --- Refinement ---
            check_cancelled(cancel, PipelineStage.REFINEMENT.value, file_name)
            started = time.monotonic()
            refined = await self._refiner.refine(raw, refine_options, cancel)
            durations[PipelineStage.REFINEMENT.value] = _elapsed_ms(started)
            warnings = list(refined.warnings)

            # --- Chunking ---
            check_cancelled(cancel, PipelineStage.CHUNKING.value, file_name)
            strategy = chunk_options.strategy
            if strategy is ChunkingStrategy.AUTO:
                strategy = StrategySelector(chunk_options).select(refined.text)
                chunk_options = chunk_options.model_copy(update={"strategy": strategy})
            started = time.monotonic()
            chunks = await asyncio.to_thread(
                self._chunk_service.chunk, refined, chunk_options, cancel, file_name
            )
            durations[PipelineStage.CHUNKING.value] = _elapsed_ms(started)

            # --- Enhancement (optional) ---
            if self._enhancer is not None and self._enhancer.is_enabled and chunks:
                check_cancelled(cancel, PipelineStage.ENHANCEMENT.value, file_name)
                started = time.monotonic()
                try:
                    chunks = await self._enhancer.enhance(chunks, _document_context(refined))
                except Exception as exc:  # noqa: BLE001
                    self._logger.warning("enhancement_stage_failed", error=str(exc))
                    warnings.append(f"Chunk enhancement skipped: {exc}")
                durations[PipelineStage.ENHANCEMENT.value] = _elapsed_ms(started)

            # --- Analysis ---
            check_cancelled(cancel, PipelineStage.ANALYSIS.value, file_name)
            started = time.monotonic()
            report = await asyncio.to_thread(self._analyzer.analyze, chunks, refined.text)
            durations[PipelineStage.ANALYSIS.value] = _elapsed_ms(started)

            self._logger.info(
                "document_processed",
                strategy=strategy.value,
                chunks=len(chunks),
                composite_score=round(report.composite_score, 3),
                warnings=len(warnings),
                durations_ms=durations,
            )
            return PipelineResult(
                refined=refined,
                chunks=chunks,
                report=report,
                warnings=warnings,
                strategy=strategy,
                stage_durations_ms=durations,
            )
        finally:
            clear_document_context()

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def process_batch(
        self,
        raws: list[RawContent],
        refine_options: RefineOptions | None = None,
        chunk_options: ChunkOptions | None = None,
        max_concurrent: int = 4,
        cancel: CancellationToken | None = None,
    ) -> list[PipelineResult | BaseException]:
        """Process independent documents concurrently.

        Results keep input order; a failed document yields its exception
        in place instead of aborting the batch.
        """
        results = await throttled_gather(
            [self.process(raw, refine_options, chunk_options, cancel) for raw in raws],
            limit=max_concurrent,
        )
        failed = sum(1 for r in results if isinstance(r, BaseException))
        self._logger.info("batch_processed", documents=len(raws), failed=failed)
        return results


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _document_context(refined: RefinedContent) -> str:
    """Title plus top-level headings, used as context for chunk enrichment."""
    parts = [refined.metadata.title] if refined.metadata.title else []
    parts.extend(s.title for s in refined.sections if s.level <= 2 and s.title)
    if len(parts) <= 1:
        parts.append(refined.text[:500])
    return "\n".join(parts)
