"""LLM-backed markdown converter.

Asks a text completion service to restructure flat extracted text into
markdown.  Any failure, or an answer that lost too much of the input,
produces ``success=False`` so the refiner keeps the raw text.
"""

from __future__ import annotations

import re

import structlog

from src.interfaces.markdown_converter import IMarkdownConverter
from src.interfaces.text_completion_service import ITextCompletionService
from src.models.completion import (
    ConversionMethod,
    MarkdownConversionOptions,
    MarkdownConversionResult,
)
from src.models.raw import RawContent
from src.utils.errors import CompletionServiceError

logger = structlog.get_logger(logger_name=__name__)

_MAX_INPUT_CHARS = 12_000
# Answers shorter than this share of the input are treated as truncated.
_MIN_LENGTH_RATIO = 0.5

_OUTER_FENCE = re.compile(r"^```(?:markdown|md)?\s*\n(.*)\n```\s*$", re.DOTALL)


class LLMMarkdownConverter(IMarkdownConverter):
    """Converts raw text to markdown through an :class:`ITextCompletionService`."""

    def __init__(self, completion_service: ITextCompletionService | None) -> None:
        self._completion_service = completion_service

    async def convert(
        self,
        raw: RawContent,
        options: MarkdownConversionOptions | None = None,
    ) -> MarkdownConversionResult:
        options = options or MarkdownConversionOptions()
        text = raw.text.strip()
        if not text:
            return MarkdownConversionResult(warnings=["No text to convert"])
        if not self.is_available():
            return MarkdownConversionResult(warnings=["Completion service unavailable"])

        warnings: list[str] = []
        if len(text) > _MAX_INPUT_CHARS:
            warnings.append(f"Input truncated to {_MAX_INPUT_CHARS} characters for conversion")
            text = text[:_MAX_INPUT_CHARS]

        try:
            answer = await self._completion_service.generate(_build_prompt(text, options))
        except CompletionServiceError as exc:
            logger.warning(
                "llm_markdown_conversion_failed", file_name=raw.file.file_name, error=str(exc)
            )
            return MarkdownConversionResult(warnings=[*warnings, str(exc)])

        markdown = _strip_outer_fence(answer)
        if len(markdown) < len(text) * _MIN_LENGTH_RATIO:
            return MarkdownConversionResult(
                warnings=[*warnings, "Converted markdown is much shorter than the input"],
            )

        logger.info(
            "llm_markdown_converted",
            file_name=raw.file.file_name,
            input_chars=len(text),
            output_chars=len(markdown),
        )
        return MarkdownConversionResult(
            markdown=markdown,
            success=True,
            method=ConversionMethod.LLM,
            warnings=warnings,
        )

    def is_available(self) -> bool:
        return self._completion_service is not None and self._completion_service.is_available()


def _build_prompt(text: str, options: MarkdownConversionOptions) -> str:
    rules = ["Do not add, drop or rephrase any content."]
    if options.preserve_headings:
        rules.append("Mark document and section titles as markdown headings (#, ##, ###).")
    if options.convert_tables:
        rules.append("Render tabular data as markdown pipe tables.")
    if options.preserve_lists:
        rules.append("Render enumerations as markdown lists.")
    return (
        "Convert the following extracted document text into well-structured markdown.\n"
        + "\n".join(f"- {rule}" for rule in rules)
        + "\nReturn only the markdown.\n\n"
        + text
    )


def _strip_outer_fence(answer: str) -> str:
    stripped = answer.strip()
    match = _OUTER_FENCE.match(stripped)
    return match.group(1).strip() if match else stripped
