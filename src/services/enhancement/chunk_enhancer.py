"""LLM-backed chunk enrichment.

Uses an :class:`~src.interfaces.text_completion_service.ITextCompletionService`
to add a summary, keywords and a one-sentence contextual summary to each
chunk.  Enrichment is strictly optional:

- without a service (or with one whose ``is_available()`` is ``False``)
  the input chunks are returned unchanged,
- a failure on one chunk is logged and counted, and that chunk is kept as
  it was.

Chunks are frozen, so enriched chunks are new records built with
``model_copy``; ``content`` and positions are never touched.
"""

from __future__ import annotations

import structlog

from src.interfaces.text_completion_service import ITextCompletionService
from src.models.chunk import ChunkAnnotations, DocumentChunk
from src.utils.concurrency import throttled_gather
from src.utils.errors import EnhancementError

logger = structlog.get_logger(logger_name=__name__)

_SUMMARY_MAX_LENGTH = 200
_MAX_CONTEXT_CHARS = 1500
_MAX_CHUNK_CHARS = 3000

_CONTEXT_PROMPT = """\
Here is the context of a document:
{document_context}

Here is one chunk of that document:
{chunk}

Write one short sentence that situates this chunk within the overall document, \
to be prepended to the chunk for retrieval. Answer with the sentence only."""


class ChunkEnhancer:
    """Adds LLM annotations to chunks with bounded concurrency.

    Parameters
    ----------
    completion_service:
        Text completion collaborator; ``None`` disables enrichment.
    max_concurrent:
        Maximum number of chunks enriched at once (default 5).
    """

    def __init__(
        self,
        completion_service: ITextCompletionService | None,
        max_concurrent: int = 5,
    ) -> None:
        self._service = completion_service
        self._max_concurrent = max(1, max_concurrent)

    @property
    def is_enabled(self) -> bool:
        return self._service is not None and self._service.is_available()

    async def enhance(
        self, chunks: list[DocumentChunk], document_context: str = ""
    ) -> list[DocumentChunk]:
        """Return enriched copies of *chunks*, in input order."""
        if not chunks or not self.is_enabled:
            return list(chunks)

        context = document_context[:_MAX_CONTEXT_CHARS]
        results = await throttled_gather(
            [self._enhance_one(chunk, context) for chunk in chunks],
            limit=self._max_concurrent,
            return_exceptions=False,
        )

        enhanced = [chunk for chunk, _ in results]
        failed = sum(1 for _, ok in results if not ok)
        logger.info(
            "chunks_enhanced",
            provider=self._service.get_provider_name(),
            total=len(enhanced),
            failed=failed,
        )
        return enhanced

    async def _enhance_one(
        self,
        chunk: DocumentChunk,
        document_context: str,
    ) -> tuple[DocumentChunk, bool]:
        try:
            annotations = await self._annotate(chunk, document_context)
        except EnhancementError as exc:
            logger.warning(
                "enhancement_failed",
                chunk_id=chunk.id,
                chunk_index=chunk.index,
                error=str(exc),
            )
            return chunk, False
        return chunk.model_copy(update={"annotations": annotations}), True

    async def _annotate(self, chunk: DocumentChunk, document_context: str) -> ChunkAnnotations:
        text = chunk.content[:_MAX_CHUNK_CHARS]
        try:
            summary = await self._service.summarize(text, _SUMMARY_MAX_LENGTH)
            contextual = await self._service.generate(
                _CONTEXT_PROMPT.format(document_context=document_context, chunk=text)
            )
        except Exception as exc:  # noqa: BLE001
            raise EnhancementError(f"Chunk {chunk.index} could not be annotated: {exc}") from exc

        return chunk.annotations.model_copy(
            update={
                "summary": summary.summary or None,
                "keywords": list(summary.keywords),
                "contextual_summary": contextual.strip() or None,
            }
        )
