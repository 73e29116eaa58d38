"""Document refinement: RawContent in, RefinedContent out.

:class:`DocumentRefiner` runs an ordered pipeline of independently
toggleable steps (see :class:`~src.models.refined.RefineOptions`):

1. Body selection -- markdown rebuilt from structured blocks/tables when the
   reader supplied them, otherwise an optional external markdown converter,
   otherwise the raw text.
2. Noise cleanup and numbered-section promotion of the flat text whenever it
   is the body, including when only tables or images are merged into it;
   a block-built body gets noise cleanup after conversion.
3. Optional header/footer and page-number removal, bullet-glyph rewrite.
4. Markdown structure normalization.
5. Whitespace normalization.
6. Section building and structure extraction on the final text.
7. Quality scoring.

Only a missing input or an unexpected failure of the orchestration itself
raises :class:`~src.utils.errors.RefinementError`.  Each individual step is
wrapped: if it throws, the text is left as it was, a warning is logged and
appended to ``RefinedContent.warnings``, and the pipeline moves on.
"""

from __future__ import annotations

import time
from typing import Callable, TypeVar

import structlog

from src.interfaces.image_to_text_service import IImageToTextService
from src.interfaces.markdown_converter import IMarkdownConverter
from src.models.completion import ImageToTextOptions, MarkdownConversionOptions
from src.models.raw import ImageInfo, RawContent
from src.models.refined import (
    DocumentMetadata,
    RefinedContent,
    RefinementInfo,
    RefinementQuality,
    RefineOptions,
    Section,
    StructuredElement,
)
from src.services.refinement import text_cleaner
from src.services.refinement.markdown_builder import build_markdown
from src.services.refinement.normalizer import MarkdownNormalizer
from src.services.refinement.structure_extractor import build_sections, extract_structures
from src.utils.cancellation import CancellationToken, check_cancelled
from src.utils.errors import ProcessingCancelledError, RefinementError
from src.utils.scoring import clamp_score, safe_ratio

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")

_STAGE = "refinement"


class DocumentRefiner:
    """Cleans, converts and structures extracted text.

    Parameters
    ----------
    markdown_converter:
        Optional converter used for documents without structured data when
        ``RefineOptions.use_llm`` is set.
    image_to_text:
        Optional service that describes embedded images; descriptions are
        quoted under the image placeholder.
    normalizer:
        Markdown normalizer.  The default keeps the first heading at its own
        level.
    """

    def __init__(
        self,
        markdown_converter: IMarkdownConverter | None = None,
        image_to_text: IImageToTextService | None = None,
        normalizer: MarkdownNormalizer | None = None,
    ) -> None:
        self._markdown_converter = markdown_converter
        self._image_to_text = image_to_text
        # Numbered-section promotion produces H3/H4 openings that must survive.
        self._normalizer = normalizer or MarkdownNormalizer(max_first_heading_level=None)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def refine(
        self,
        raw: RawContent | None,
        options: RefineOptions | None = None,
        cancel: CancellationToken | None = None,
    ) -> RefinedContent:
        """Refine *raw* into a :class:`RefinedContent`.

        Raises
        ------
        RefinementError
            If *raw* is ``None`` or refinement fails as a whole.
        ProcessingCancelledError
            If *cancel* is set while refinement is running.
        """
        if raw is None:
            raise RefinementError(message="RawContent is required")

        options = options or RefineOptions()
        file_name = raw.file.file_name or None
        try:
            return await self._run(raw, options, cancel)
        except (ProcessingCancelledError, RefinementError):
            raise
        except Exception as exc:
            logger.error("refinement_failed", file_name=file_name, error=str(exc))
            raise RefinementError(
                message=f"Refinement failed: {exc}", file_name=file_name
            ) from exc

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _run(
        self, raw: RawContent, options: RefineOptions, cancel: CancellationToken | None
    ) -> RefinedContent:
        started = time.monotonic()
        file_name = raw.file.file_name or None
        warnings: list[str] = list(raw.warnings)
        steps: list[str] = []
        used_llm = False

        def apply(name: str, step: Callable[[str], str], current: str) -> str:
            check_cancelled(cancel, _STAGE, file_name)
            try:
                updated = step(current)
            except ProcessingCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                logger.warning("refine_step_failed", step=name, file_name=file_name, error=str(exc))
                warnings.append(f"Refinement step '{name}' failed: {exc}")
                return current
            steps.append(name)
            return updated

        text = raw.text
        convert_structured = raw.has_structured_data and (
            options.convert_blocks_to_markdown or options.convert_tables_to_markdown
        )

        if convert_structured:
            flat_body = not (options.convert_blocks_to_markdown and raw.blocks)
            source = raw
            if flat_body:
                # The flat text is the body, so it gets the plain-text cleanup first.
                text = self._prepare_flat_text(text, options, apply)
                source = raw.model_copy(update={"text": text})
            descriptions = await self._describe_images(raw.images, cancel, file_name, warnings)
            text = apply(
                "structured_to_markdown",
                lambda _: build_markdown(
                    source,
                    convert_blocks=options.convert_blocks_to_markdown,
                    convert_tables=options.convert_tables_to_markdown,
                    image_descriptions=descriptions,
                    include_image_placeholders=options.include_image_placeholders,
                    cancel=cancel,
                ),
                text,
            )
            if options.clean_noise and not flat_body:
                text = apply("clean_noise", text_cleaner.clean_noise, text)
        else:
            if options.use_llm:
                text, used_llm = await self._convert_with_llm(raw, file_name, warnings)
                if used_llm:
                    steps.append("llm_markdown_conversion")
            text = self._prepare_flat_text(text, options, apply)

        if options.remove_headers_footers:
            text = apply("remove_headers_footers", text_cleaner.remove_headers_footers, text)
        if options.remove_page_numbers:
            text = apply("remove_page_numbers", text_cleaner.remove_page_numbers, text)

        if options.normalize_markdown_structure:
            text = apply("normalize_bullet_glyphs", text_cleaner.normalize_bullet_glyphs, text)
            text = apply("normalize_markdown", lambda t: self._normalizer.normalize(t).text, text)

        if options.normalize_whitespace:
            text = apply("normalize_whitespace", text_cleaner.normalize_whitespace, text)

        check_cancelled(cancel, _STAGE, file_name)
        sections: list[Section] = []
        if options.build_sections:
            sections = self._collect("build_sections", build_sections, text, file_name, warnings)
        structures: list[StructuredElement] = []
        if options.extract_structures:
            structures = self._collect(
                "extract_structures",
                lambda t: extract_structures(t, raw.tables),
                text,
                file_name,
                warnings,
            )

        duration_ms = round((time.monotonic() - started) * 1000, 2)
        quality = _score_refinement(raw.text, text, sections, structures)

        logger.info(
            "refinement_complete",
            file_name=file_name,
            original_length=quality.original_length,
            refined_length=quality.refined_length,
            sections=len(sections),
            structures=len(structures),
            used_llm=used_llm,
            duration_ms=duration_ms,
        )

        return RefinedContent(
            raw_id=raw.id,
            text=text,
            sections=sections,
            structures=structures,
            metadata=_document_metadata(raw),
            quality=quality,
            info=RefinementInfo(
                refiner_type=type(self).__name__,
                used_llm=used_llm,
                duration_ms=duration_ms,
                steps_applied=steps,
            ),
            warnings=warnings,
        )

    @staticmethod
    def _prepare_flat_text(
        text: str, options: RefineOptions, apply: Callable[[str, Callable[[str], str], str], str]
    ) -> str:
        if options.clean_noise:
            text = apply("clean_noise", text_cleaner.clean_noise, text)
        if options.build_sections:
            text = apply("promote_numbered_sections", text_cleaner.promote_numbered_sections, text)
        return text

    @staticmethod
    def _collect(
        name: str,
        extractor: Callable[[str], list[_T]],
        text: str,
        file_name: str | None,
        warnings: list[str],
    ) -> list[_T]:
        try:
            return extractor(text)
        except Exception as exc:  # noqa: BLE001
            logger.warning("refine_step_failed", step=name, file_name=file_name, error=str(exc))
            warnings.append(f"Refinement step '{name}' failed: {exc}")
            return []

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------

    async def _convert_with_llm(
        self, raw: RawContent, file_name: str | None, warnings: list[str]
    ) -> tuple[str, bool]:
        converter = self._markdown_converter
        if converter is None or not converter.is_available():
            warnings.append("LLM conversion requested but no markdown converter is available")
            return raw.text, False
        try:
            result = await converter.convert(raw, MarkdownConversionOptions(use_llm_inference=True))
        except Exception as exc:  # noqa: BLE001
            logger.warning("markdown_converter_failed", file_name=file_name, error=str(exc))
            warnings.append(f"Markdown converter failed: {exc}")
            return raw.text, False
        warnings.extend(result.warnings)
        if not result.success or not result.markdown.strip():
            warnings.append("Markdown converter returned no usable output; kept raw text")
            return raw.text, False
        return result.markdown, True

    async def _describe_images(
        self,
        images: list[ImageInfo],
        cancel: CancellationToken | None,
        file_name: str | None,
        warnings: list[str],
    ) -> dict[str, str]:
        service = self._image_to_text
        if not images or service is None or not service.is_available():
            return {}

        descriptions: dict[str, str] = {}
        for image in images:
            check_cancelled(cancel, _STAGE, file_name)
            if not image.data:
                continue
            try:
                result = await service.extract_text(image.data, ImageToTextOptions())
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "image_to_text_failed", file_name=file_name, image_id=image.id, error=str(exc)
                )
                warnings.append(f"Image '{image.id}' could not be described: {exc}")
                continue
            if result.is_success:
                descriptions[image.id] = result.text
        return descriptions


# ----------------------------------------------------------------------
# Scoring and metadata
# ----------------------------------------------------------------------

def _score_refinement(
    original: str,
    refined: str,
    sections: list[Section],
    structures: list[StructuredElement],
) -> RefinementQuality:
    original_length = len(original)
    refined_length = len(refined)

    if structures and sections:
        structure_score = 0.9
    elif structures or sections:
        structure_score = 0.7
    else:
        structure_score = 0.5

    return RefinementQuality(
        original_length=original_length,
        refined_length=refined_length,
        structure_score=structure_score,
        cleanup_score=_cleanup_score(original_length, refined_length),
        retention_score=clamp_score(safe_ratio(refined_length, original_length, default=1.0)),
    )


def _cleanup_score(original_length: int, refined_length: int) -> float:
    """Reward a modest 5-20% reduction; heavy reduction suggests lost content."""
    if original_length == 0:
        return 1.0
    reduction = (original_length - refined_length) / original_length
    if 0.05 <= reduction <= 0.20:
        return 0.9
    if 0.0 <= reduction < 0.05:
        return 0.8
    if 0.20 < reduction <= 0.35:
        return 0.7
    return 0.5


def _document_metadata(raw: RawContent) -> DocumentMetadata:
    info = raw.file
    return DocumentMetadata(
        file_name=info.file_name,
        file_path=info.file_path,
        file_type=info.extension.lstrip(".").upper(),
        size=info.size,
        title=info.file_name,
        created_at=info.created_at,
        modified_at=info.modified_at,
    )
