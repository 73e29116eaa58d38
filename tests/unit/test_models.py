"""Unit tests for docflux pydantic models: strategies, options, frozen records."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models.chunk import ChunkAnnotations, ChunkingStrategy, ChunkOptions, DocumentChunk
from src.models.completion import ContentSummary, ImageToTextResult, QualityAssessment
from src.models.raw import BoundingBox, ImageInfo, RawContent, TableData, TextBlock
from src.models.refined import RefinementQuality
from src.utils.errors import InputValidationError


class TestChunkingStrategy:
    """Strategy names, including legacy aliases."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("sentence", ChunkingStrategy.SENTENCE),
            ("Paragraph", ChunkingStrategy.PARAGRAPH),
            (" semantic ", ChunkingStrategy.SEMANTIC),
            ("smart", ChunkingStrategy.SENTENCE),
            ("intelligent", ChunkingStrategy.SEMANTIC),
            ("fixed-size", ChunkingStrategy.TOKEN),
            ("FixedSize", ChunkingStrategy.TOKEN),
            ("page_level", ChunkingStrategy.PARAGRAPH),
        ],
    )
    def test_resolve(self, name: str, expected: ChunkingStrategy) -> None:
        assert ChunkingStrategy.resolve(name) is expected

    def test_resolve_member_passthrough(self) -> None:
        assert ChunkingStrategy.resolve(ChunkingStrategy.TOKEN) is ChunkingStrategy.TOKEN

    def test_resolve_unknown_raises(self) -> None:
        with pytest.raises(InputValidationError, match="Unknown chunking strategy"):
            ChunkingStrategy.resolve("bogus")


class TestChunkOptions:
    def test_defaults(self) -> None:
        options = ChunkOptions()
        assert options.strategy is ChunkingStrategy.AUTO
        assert options.max_chunk_size == 1024
        assert options.min_chunk_size == 100
        assert options.overlap_size == 128
        assert options.effective_target == 1024

    def test_overlap_must_be_smaller_than_max(self) -> None:
        with pytest.raises(ValidationError):
            ChunkOptions(max_chunk_size=100, overlap_size=100)

    def test_min_must_not_exceed_max(self) -> None:
        with pytest.raises(ValidationError):
            ChunkOptions(max_chunk_size=100, min_chunk_size=200, overlap_size=10)

    def test_non_positive_max_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChunkOptions(max_chunk_size=0, overlap_size=0, min_chunk_size=0)

    def test_effective_target_capped_by_max(self) -> None:
        assert ChunkOptions(target_chunk_size=5000).effective_target == 1024
        assert ChunkOptions(target_chunk_size=500).effective_target == 500


class TestDocumentChunk:
    def test_frozen(self) -> None:
        chunk = DocumentChunk(id="c1", content="Some text.")
        with pytest.raises(ValidationError):
            chunk.content = "changed"  # type: ignore[misc]

    def test_empty_content_rejected(self) -> None:
        with pytest.raises(ValidationError):
            DocumentChunk(id="c1", content="")

    def test_model_copy_leaves_original_untouched(self) -> None:
        chunk = DocumentChunk(id="c1", content="Some text.")
        enriched = chunk.model_copy(
            update={"annotations": ChunkAnnotations(summary="A summary.")}
        )
        assert enriched.annotations.summary == "A summary."
        assert chunk.annotations.summary is None
        assert enriched.content == chunk.content


class TestRawModels:
    def test_has_structured_data(self) -> None:
        assert RawContent(text="plain").has_structured_data is False
        assert RawContent(blocks=[TextBlock(content="x")]).has_structured_data is True
        assert RawContent(tables=[TableData(cells=[["a"]])]).has_structured_data is True

    def test_column_count_uses_widest_row(self) -> None:
        table = TableData(cells=[["a", "b"], ["c", "d", "e"]])
        assert table.column_count == 3
        assert TableData().column_count == 0

    def test_position_key_orders_by_page_then_height(self) -> None:
        upper = TextBlock(content="upper", page_number=1, location=BoundingBox(top=700))
        lower = TextBlock(content="lower", page_number=1, location=BoundingBox(top=100))
        next_page = TextBlock(content="next", page_number=2, location=BoundingBox(top=800))
        ordered = sorted([next_page, lower, upper], key=lambda b: b.position_key())
        assert [b.content for b in ordered] == ["upper", "lower", "next"]

    def test_unlocated_items_keep_ordinal_order_ahead_of_located(self) -> None:
        located = TextBlock(
            content="located", page_number=1, order=0, location=BoundingBox(top=700)
        )
        first = TextBlock(content="first", page_number=1, order=1)
        second = TableData(cells=[["x"]], page_number=1, order=2)
        image = ImageInfo(id="img", position=3, properties={"PageNumber": "1"})

        ordered = sorted([image, located, second, first], key=lambda item: item.position_key())
        assert ordered == [first, second, image, located]

    @pytest.mark.parametrize("value", ["inf", "-inf", "nan", "1e999", "n/a"])
    def test_non_finite_hints_treated_as_missing(self, value: str) -> None:
        image = ImageInfo(id="img", properties={"PageNumber": value, "BoundsBottom": value})
        assert image.page_number is None
        assert image.position_key() == (0, 0, 0.0, 0)

    def test_bounding_box_rejects_non_finite(self) -> None:
        with pytest.raises(ValidationError):
            BoundingBox(top=float("nan"))

    def test_image_page_number_from_properties(self) -> None:
        image = ImageInfo(id="img1", properties={"PageNumber": "3"})
        assert image.page_number == 3
        assert ImageInfo(id="img2", properties={"PageNumber": "n/a"}).page_number is None


class TestDerivedScores:
    def test_refinement_overall_score(self) -> None:
        quality = RefinementQuality(structure_score=0.9, cleanup_score=0.6, retention_score=0.9)
        assert quality.overall_score == pytest.approx(0.8)

    def test_quality_assessment_overall(self) -> None:
        assessment = QualityAssessment(
            confidence_score=0.9, completeness_score=0.6, consistency_score=0.3
        )
        assert assessment.overall_score == pytest.approx(0.6)

    def test_summary_compression_ratio(self) -> None:
        summary = ContentSummary(summary="x" * 20, original_length=100)
        assert summary.compression_ratio == pytest.approx(0.2)

    def test_image_result_success(self) -> None:
        assert ImageToTextResult(text="hello").is_success is True
        assert ImageToTextResult(text="", error_message="boom").is_success is False
