"""Unit tests for DocumentRefiner -- step ordering, degradation and scoring."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.interfaces.image_to_text_service import IImageToTextService
from src.interfaces.markdown_converter import IMarkdownConverter
from src.models.completion import (
    ConversionMethod,
    ImageToTextResult,
    MarkdownConversionResult,
)
from src.models.raw import BlockType, ImageInfo, TableData, TextBlock
from src.models.refined import RefineOptions
from src.services.refinement import text_cleaner
from src.services.refinement.refiner import DocumentRefiner
from src.utils.cancellation import CancellationToken
from src.utils.errors import ProcessingCancelledError, RefinementError

_NUMBERED_DOC = """\
Project overview for the platform team.

3-1. Technical Requirements

The system must scale to ten thousand users.

3-2. Operational Requirements

On-call rotation covers every weekday.
"""


def _converter(result: MarkdownConversionResult | None = None, error: Exception | None = None):
    converter = MagicMock(spec=IMarkdownConverter)
    converter.is_available.return_value = True
    converter.convert = AsyncMock(return_value=result, side_effect=error)
    return converter


# ======================================================================
# Plain-text path
# ======================================================================


class TestPlainTextRefinement:
    @pytest.mark.asyncio
    async def test_none_input_raises(self) -> None:
        with pytest.raises(RefinementError, match="RawContent is required"):
            await DocumentRefiner().refine(None)

    @pytest.mark.asyncio
    async def test_numbered_sections_promoted(self, raw_factory) -> None:
        refined = await DocumentRefiner().refine(raw_factory(_NUMBERED_DOC, "standard.txt"))

        assert "### 3-1. Technical Requirements" in refined.text
        assert "### 3-2. Operational Requirements" in refined.text
        assert [s.title for s in refined.sections] == [
            "3-1. Technical Requirements",
            "3-2. Operational Requirements",
        ]
        assert all(s.level == 3 for s in refined.sections)
        assert refined.sections[-1].end == len(refined.text)

    @pytest.mark.asyncio
    async def test_steps_recorded_in_order(self, raw_factory) -> None:
        refined = await DocumentRefiner().refine(raw_factory(_NUMBERED_DOC, "standard.txt"))
        assert refined.info.steps_applied == [
            "clean_noise",
            "promote_numbered_sections",
            "normalize_bullet_glyphs",
            "normalize_markdown",
            "normalize_whitespace",
        ]
        assert refined.info.used_llm is False
        assert refined.info.refiner_type == "DocumentRefiner"

    @pytest.mark.asyncio
    async def test_options_disable_steps(self, raw_factory) -> None:
        options = RefineOptions(
            clean_noise=False,
            build_sections=False,
            normalize_markdown_structure=False,
            normalize_whitespace=False,
            extract_structures=False,
        )
        raw = raw_factory(_NUMBERED_DOC, "standard.txt")
        refined = await DocumentRefiner().refine(raw, options)
        assert refined.text == raw.text
        assert refined.sections == []
        assert refined.structures == []
        assert refined.info.steps_applied == []

    @pytest.mark.asyncio
    async def test_metadata_and_quality(self, raw_factory, sample_markdown: str) -> None:
        refined = await DocumentRefiner().refine(raw_factory(sample_markdown, "guide.md"))

        assert refined.raw_id == "raw-001"
        assert refined.metadata.file_name == "guide.md"
        assert refined.metadata.file_type == "MD"
        assert refined.quality.original_length == len(sample_markdown)
        assert refined.quality.refined_length == len(refined.text)
        # Both sections and structures were found.
        assert refined.quality.structure_score == 0.9
        assert 0.0 <= refined.quality.retention_score <= 1.0

    @pytest.mark.asyncio
    async def test_empty_text(self, raw_factory) -> None:
        refined = await DocumentRefiner().refine(raw_factory("", "empty.txt"))
        assert refined.text == ""
        assert refined.sections == []
        assert refined.quality.structure_score == 0.5

    @pytest.mark.asyncio
    async def test_raw_warnings_carried_over(self, raw_factory) -> None:
        raw = raw_factory("Body text.", "a.txt", warnings=["reader warning"])
        refined = await DocumentRefiner().refine(raw)
        assert refined.warnings[0] == "reader warning"


# ======================================================================
# Graceful degradation
# ======================================================================


class TestDegradation:
    @pytest.mark.asyncio
    async def test_failing_step_is_skipped_with_warning(self, raw_factory) -> None:
        with patch.object(text_cleaner, "clean_noise", side_effect=ValueError("bad regex")):
            refined = await DocumentRefiner().refine(raw_factory(_NUMBERED_DOC, "standard.txt"))

        assert "clean_noise" not in refined.info.steps_applied
        assert "promote_numbered_sections" in refined.info.steps_applied
        assert any("clean_noise" in w and "bad regex" in w for w in refined.warnings)
        assert "### 3-1. Technical Requirements" in refined.text

    @pytest.mark.asyncio
    async def test_llm_requested_without_converter(self, raw_factory) -> None:
        refined = await DocumentRefiner().refine(
            raw_factory("Plain text.", "a.txt"), RefineOptions(use_llm=True)
        )
        assert refined.info.used_llm is False
        assert any("no markdown converter" in w for w in refined.warnings)

    @pytest.mark.asyncio
    async def test_converter_exception_keeps_raw_text(self, raw_factory) -> None:
        converter = _converter(error=RuntimeError("model offline"))
        refiner = DocumentRefiner(markdown_converter=converter)

        refined = await refiner.refine(
            raw_factory("Plain text body.", "a.txt"), RefineOptions(use_llm=True)
        )
        assert refined.text == "Plain text body."
        assert refined.info.used_llm is False
        assert any("model offline" in w for w in refined.warnings)

    @pytest.mark.asyncio
    async def test_converter_success_used(self, raw_factory) -> None:
        converter = _converter(
            MarkdownConversionResult(
                markdown="# Title\n\nPlain text body.",
                success=True,
                method=ConversionMethod.LLM,
            )
        )
        refiner = DocumentRefiner(markdown_converter=converter)

        refined = await refiner.refine(
            raw_factory("Title\nPlain text body.", "a.txt"), RefineOptions(use_llm=True)
        )
        assert refined.text == "# Title\n\nPlain text body."
        assert refined.info.used_llm is True
        assert refined.info.steps_applied[0] == "llm_markdown_conversion"

    @pytest.mark.asyncio
    async def test_converter_not_called_without_use_llm(self, raw_factory) -> None:
        converter = _converter(MarkdownConversionResult(markdown="x", success=True))
        await DocumentRefiner(markdown_converter=converter).refine(raw_factory("Text.", "a.txt"))
        converter.convert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancellation(self, raw_factory) -> None:
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ProcessingCancelledError) as exc_info:
            await DocumentRefiner().refine(raw_factory("Text.", "a.txt"), cancel=token)
        assert exc_info.value.stage == "refinement"


# ======================================================================
# Structured path
# ======================================================================


class TestStructuredRefinement:
    @pytest.mark.asyncio
    async def test_blocks_and_tables_become_markdown(self, raw_factory) -> None:
        raw = raw_factory(
            "ignored flat text",
            "report.pdf",
            blocks=[
                TextBlock(
                    content="Quarterly Report", type=BlockType.HEADING, heading_level=1, order=0
                ),
                TextBlock(content="Revenue grew in every region.", order=1),
            ],
            tables=[
                TableData(cells=[["Region", "Sales"], ["North", "10"]], has_header=True, order=2)
            ],
        )
        refined = await DocumentRefiner().refine(raw)

        assert refined.text.startswith("# Quarterly Report\n\nRevenue grew in every region.")
        assert "| Region | Sales |" in refined.text
        assert "ignored flat text" not in refined.text
        assert "structured_to_markdown" in refined.info.steps_applied
        assert "promote_numbered_sections" not in refined.info.steps_applied
        # Source table element first, then the table scanned from the text.
        assert refined.structures[0].start == refined.structures[0].end == 0

    @pytest.mark.asyncio
    async def test_flat_text_with_tables_gets_sections_promoted(self, raw_factory) -> None:
        raw = raw_factory(
            "3-1. Technical Requirements\nThe system shall work.",
            "requirements.docx",
            tables=[TableData(cells=[["a", "b"], ["1", "2"]], has_header=True, order=1)],
        )
        refined = await DocumentRefiner().refine(raw)

        assert refined.text.startswith("### 3-1. Technical Requirements\n")
        assert "| a | b |" in refined.text
        assert refined.text.index("3-1.") < refined.text.index("| a | b |")
        assert [s.title for s in refined.sections] == ["3-1. Technical Requirements"]
        assert refined.info.steps_applied[:3] == [
            "clean_noise",
            "promote_numbered_sections",
            "structured_to_markdown",
        ]
        assert refined.quality.original_length == len(raw.text)

    @pytest.mark.asyncio
    async def test_image_descriptions_are_quoted(self, raw_factory) -> None:
        service = MagicMock(spec=IImageToTextService)
        service.is_available.return_value = True
        service.extract_text = AsyncMock(return_value=ImageToTextResult(text="Bar chart of sales"))
        raw = raw_factory(
            "",
            "deck.pdf",
            blocks=[TextBlock(content="Slide one", order=0)],
            images=[ImageInfo(id="img1", data=b"\x89PNG\r\n\x1a\n", caption="Sales", position=1)],
        )

        refined = await DocumentRefiner(image_to_text=service).refine(raw)
        assert "![Sales](embedded:img1)\n\n> Bar chart of sales" in refined.text

    @pytest.mark.asyncio
    async def test_image_failure_becomes_warning(self, raw_factory) -> None:
        service = MagicMock(spec=IImageToTextService)
        service.is_available.return_value = True
        service.extract_text = AsyncMock(side_effect=RuntimeError("vision down"))
        raw = raw_factory(
            "",
            "deck.pdf",
            blocks=[TextBlock(content="Slide one", order=0)],
            images=[ImageInfo(id="img1", data=b"bytes", position=1)],
        )

        refined = await DocumentRefiner(image_to_text=service).refine(raw)
        assert "![](embedded:img1)" in refined.text
        assert any("img1" in w and "vision down" in w for w in refined.warnings)
