"""Unit tests for ChunkService -- stamping, scores and error wrapping."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from src.models.chunk import ChunkingStrategy, ChunkOptions
from src.models.refined import DocumentMetadata, RefinedContent
from src.services.chunking.chunk_service import (
    ChunkService,
    classify_content,
    completeness_score,
    detect_document_domain,
    heading_path,
    importance_score,
    top_keywords,
)
from src.services.refinement.structure_extractor import build_sections
from src.utils.cancellation import CancellationToken
from src.utils.errors import ChunkingError, ProcessingCancelledError

_SHORT_DOC = "This is sentence one. This is sentence two. This is sentence three."


class TestChunkService:
    def test_empty_text_gives_no_chunks(self) -> None:
        assert ChunkService().chunk("") == []
        assert ChunkService().chunk("  \n ") == []

    def test_three_sentence_paragraph_single_chunk(self) -> None:
        chunks = ChunkService().chunk(_SHORT_DOC, ChunkOptions(max_chunk_size=1000))

        assert len(chunks) == 1
        chunk = chunks[0]
        assert chunk.content == _SHORT_DOC
        assert chunk.strategy is ChunkingStrategy.PARAGRAPH
        # Three of four factors: only the minimum-length factor fails.
        assert chunk.completeness_score == 0.75
        assert chunk.previous_chunk_id is None
        assert chunk.next_chunk_id is None
        assert chunk.source_info.chunk_count == 1
        assert chunk.token_count == len(_SHORT_DOC) // 4
        assert chunk.word_count == 12

    def test_navigation_links_and_indices(self, long_text: str) -> None:
        options = ChunkOptions(max_chunk_size=300, overlap_size=60, min_chunk_size=0)
        chunks = ChunkService().chunk(long_text, options)

        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert len({c.id for c in chunks}) == len(chunks)
        for previous, current in zip(chunks, chunks[1:]):
            assert previous.next_chunk_id == current.id
            assert current.previous_chunk_id == previous.id
        assert all(c.source_info.chunk_count == len(chunks) for c in chunks)
        assert all(0.0 <= (c.quality_score or 0.0) <= 1.0 for c in chunks)

    def test_heading_path_and_document_annotations(self, sample_markdown: str) -> None:
        options = ChunkOptions(
            strategy=ChunkingStrategy.HIERARCHICAL,
            max_chunk_size=300,
            overlap_size=0,
            min_chunk_size=0,
        )
        chunks = ChunkService().chunk(sample_markdown, options, file_name="guide.md")

        chunking = next(c for c in chunks if "Chunking splits" in c.content)
        assert chunking.heading_path == ["Retrieval Pipeline Guide", "Chunking"]
        assert chunking.topic_category == "Chunking"
        assert chunks[0].annotations.document_topic == "Retrieval Pipeline Guide"
        assert chunks[0].annotations.document_keywords
        assert chunks[0].source_info.title == "guide.md"
        assert chunks[0].importance == pytest.approx(0.9)

    def test_refined_content_metadata_used(self) -> None:
        refined = RefinedContent(
            raw_id="raw-1",
            text=_SHORT_DOC,
            metadata=DocumentMetadata(file_name="notes.txt", file_type="TXT", title="Notes"),
        )
        (chunk,) = ChunkService().chunk(refined)
        assert chunk.source_info.title == "Notes"
        assert chunk.source_info.source_type == "TXT"

    def test_engine_failure_wrapped_with_file_name(self) -> None:
        engine = MagicMock()
        engine.split.side_effect = RuntimeError("boom")
        service = ChunkService(engine_factory=lambda options: engine)

        with pytest.raises(ChunkingError) as exc_info:
            service.chunk("Some text to chunk.", file_name="broken.md")
        assert exc_info.value.file_name == "broken.md"
        assert "boom" in str(exc_info.value)

    def test_cancellation_carries_stage(self, long_text: str) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ProcessingCancelledError) as exc_info:
            ChunkService().chunk(long_text, cancel=token, file_name="long.txt")
        assert exc_info.value.stage == "chunking"
        assert exc_info.value.file_name == "long.txt"


class TestHeuristics:
    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("A full sentence that is long enough to count as complete text for sure.", 0.75),
            ("lowercase fragment without ending", 0.25),
            ("```python\nunclosed = True.", 0.25),
            ("", 0.0),
        ],
    )
    def test_completeness(self, content: str, expected: float) -> None:
        assert completeness_score(content, min_size=100) == expected

    @pytest.mark.parametrize(
        ("content", "expected"),
        [
            ("```\ncode\n```", "code"),
            ("| a | b |\n| --- | --- |\n| 1 | 2 |", "table"),
            ("- one\n- two", "list"),
            ("- one\n- two\n\n```\ncode\n```", "mixed"),
            ("## Heading only", "heading"),
            ("Plain prose.", "text"),
        ],
    )
    def test_classify_content(self, content: str, expected: str) -> None:
        assert classify_content(content) == expected

    def test_importance(self) -> None:
        assert importance_score("Plain prose.") == 0.5
        assert importance_score("## Heading\n\n- a\n- b") == pytest.approx(0.8)
        assert importance_score("## Heading", is_first=True) == pytest.approx(0.9)

    def test_heading_path_pops_siblings(self) -> None:
        text = "# A\n\n## B\n\ntext b\n\n## C\n\n### D\n\ntext d"
        sections = build_sections(text)
        assert heading_path(sections, text.index("text b")) == ["A", "B"]
        assert heading_path(sections, text.index("text d")) == ["A", "C", "D"]
        assert heading_path(sections, 0) == ["A"]

    @pytest.mark.parametrize(
        ("text", "domain"),
        [
            ("This study describes our methodology and hypothesis.", "Academic"),
            ("Stakeholders agreed on the timeline and milestones.", "Business"),
            ("The API endpoint reads from the database.", "Technical"),
            ("A quiet walk through the park.", "General"),
        ],
    )
    def test_document_domain(self, text: str, domain: str) -> None:
        assert detect_document_domain(text) == domain

    def test_top_keywords(self) -> None:
        text = "chunking chunking chunking overlap overlap boundary"
        assert top_keywords(text, limit=2) == ["chunking", "overlap"]
