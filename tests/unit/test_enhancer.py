"""Unit tests for ChunkEnhancer -- optional LLM annotations."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from src.models.completion import ContentSummary
from src.services.enhancement.chunk_enhancer import ChunkEnhancer
from src.utils.concurrency import throttled_gather


def _chunks(chunk_factory, count: int = 3):
    return [
        chunk_factory(f"Chunk number {i} talks about topic {i}.", index=i) for i in range(count)
    ]


class TestChunkEnhancer:
    @pytest.mark.asyncio
    async def test_no_service_returns_chunks_unchanged(self, chunk_factory) -> None:
        chunks = _chunks(chunk_factory)
        enhancer = ChunkEnhancer(None)

        assert enhancer.is_enabled is False
        assert await enhancer.enhance(chunks) == chunks

    @pytest.mark.asyncio
    async def test_unavailable_service_skipped(
        self, chunk_factory, mock_completion_service
    ) -> None:
        mock_completion_service.is_available.return_value = False
        chunks = _chunks(chunk_factory)

        assert await ChunkEnhancer(mock_completion_service).enhance(chunks) == chunks
        mock_completion_service.summarize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_annotations_added(self, chunk_factory, mock_completion_service) -> None:
        chunks = _chunks(chunk_factory)
        enhanced = await ChunkEnhancer(mock_completion_service).enhance(
            chunks, document_context="A guide to retrieval pipelines."
        )

        assert len(enhanced) == 3
        for original, chunk in zip(chunks, enhanced):
            assert chunk.content == original.content
            assert chunk.id == original.id
            assert chunk.annotations.summary == "Short summary."
            assert chunk.annotations.keywords == ["refinement", "chunking"]
            assert chunk.annotations.contextual_summary == (
                "This chunk belongs to the refinement chapter."
            )
        prompt = mock_completion_service.generate.await_args.args[0]
        assert "A guide to retrieval pipelines." in prompt

    @pytest.mark.asyncio
    async def test_failure_keeps_original_chunk(
        self, chunk_factory, mock_completion_service
    ) -> None:
        async def summarize(text: str, max_length: int) -> ContentSummary:
            if "number 1" in text:
                raise RuntimeError("rate limited")
            return ContentSummary(summary="ok", keywords=["k"], confidence=0.8)

        mock_completion_service.summarize = AsyncMock(side_effect=summarize)
        chunks = _chunks(chunk_factory)

        enhanced = await ChunkEnhancer(mock_completion_service).enhance(chunks)

        assert [c.id for c in enhanced] == [c.id for c in chunks]
        assert enhanced[1] == chunks[1]
        assert enhanced[0].annotations.summary == "ok"
        assert enhanced[2].annotations.summary == "ok"

    @pytest.mark.asyncio
    async def test_order_preserved_with_low_concurrency(
        self, chunk_factory, mock_completion_service
    ) -> None:
        chunks = _chunks(chunk_factory, count=8)
        enhanced = await ChunkEnhancer(mock_completion_service, max_concurrent=2).enhance(chunks)

        assert [c.index for c in enhanced] == list(range(8))
        assert mock_completion_service.summarize.await_count == 8

    @pytest.mark.asyncio
    async def test_in_flight_calls_bounded(self, chunk_factory, mock_completion_service) -> None:
        in_flight = 0
        peak = 0

        async def summarize(text: str, max_length: int) -> ContentSummary:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return ContentSummary(summary="ok", keywords=[], confidence=0.8)

        mock_completion_service.summarize = AsyncMock(side_effect=summarize)
        enhancer = ChunkEnhancer(mock_completion_service, max_concurrent=3)

        with patch(
            "src.services.enhancement.chunk_enhancer.throttled_gather", wraps=throttled_gather
        ) as gather:
            enhanced = await enhancer.enhance(_chunks(chunk_factory, count=9))

        assert len(enhanced) == 9
        assert peak == 3
        assert gather.call_args.kwargs["limit"] == 3
