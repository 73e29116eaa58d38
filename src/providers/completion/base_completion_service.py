"""Shared prompt/parse logic for chat-completion backed text services.

Concrete adapters only implement :meth:`BaseCompletionService._chat`; the
structured operations (structure analysis, summarization, metadata
extraction, quality assessment) are built on top of it here.

Models frequently wrap JSON in markdown fences or add a preamble despite
being asked not to, so answers go through :func:`parse_json_object`.  An
answer that still cannot be parsed yields a low-confidence default record
rather than an exception; only a failed API call raises.
"""

from __future__ import annotations

import json
import re
from abc import abstractmethod
from typing import Any

import structlog

from src.interfaces.text_completion_service import ITextCompletionService
from src.models.completion import (
    ContentSummary,
    MetadataExtractionResult,
    QualityAssessment,
    SectionInfo,
    StructureAnalysisResult,
)
from src.utils.errors import CompletionServiceError

logger = structlog.get_logger(logger_name=__name__)

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Confidence reported when the model answered but not in parseable JSON.
_UNPARSED_CONFIDENCE = 0.5
_DEFAULT_CONFIDENCE = 0.8
_MAX_PROMPT_TEXT = 8000

_JSON_ONLY = "Respond with a single JSON object and nothing else."

_STRUCTURE_SYSTEM = f"You analyze the section structure of documents. {_JSON_ONLY}"
_SUMMARY_SYSTEM = f"You write concise summaries of document passages. {_JSON_ONLY}"
_METADATA_SYSTEM = f"You extract metadata from documents. {_JSON_ONLY}"
_QUALITY_SYSTEM = f"You assess the quality of extracted document text. {_JSON_ONLY}"
_GENERATE_SYSTEM = "You are a precise assistant for document processing tasks."


def parse_json_object(response: str) -> dict[str, Any] | None:
    """Extract a JSON object from a model answer.

    Tries, in order: the content of a markdown code fence, the whole
    answer, and the span between the first ``{`` and the last ``}``.
    Returns ``None`` when none of them parses to a dict.
    """
    text = response.strip()
    fence_match = _JSON_FENCE_RE.search(text)
    if fence_match:
        text = fence_match.group(1).strip()

    candidates = [text]
    brace_start = text.find("{")
    brace_end = text.rfind("}")
    if brace_start != -1 and brace_end > brace_start:
        candidates.append(text[brace_start : brace_end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def _as_str_list(value: object) -> list[str]:
    if isinstance(value, list):
        return [str(v).strip() for v in value if v and str(v).strip()]
    return []


def _as_score(value: object, default: float = _DEFAULT_CONFIDENCE) -> float:
    try:
        score = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, score))


def _as_int(value: object, default: int = 0) -> int:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default


class BaseCompletionService(ITextCompletionService):
    """Implements the structured operations on top of a single chat call."""

    @abstractmethod
    async def _chat(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 2000,
    ) -> str:
        """Send one system+user exchange and return the answer text.

        Raises
        ------
        CompletionServiceError
            If the API call fails or returns no content.
        """

    # ------------------------------------------------------------------
    # ITextCompletionService implementation
    # ------------------------------------------------------------------

    async def generate(self, prompt: str) -> str:
        answer = await self._chat(_GENERATE_SYSTEM, prompt)
        if not answer.strip():
            raise CompletionServiceError(
                message=f"{self.get_provider_name()} returned empty response"
            )
        return answer.strip()

    async def analyze_structure(
        self, text: str, document_type: str = "general"
    ) -> StructureAnalysisResult:
        prompt = (
            f"Document type: {document_type}\n"
            "List the sections of the document below as JSON with keys "
            '"sections" (array of objects with "title", "level", "startPosition", '
            '"endPosition", "importance") and "confidence" (0-1).\n\n'
            f"Document:\n{text[:_MAX_PROMPT_TEXT]}"
        )
        answer = await self._chat(_STRUCTURE_SYSTEM, prompt)
        data = parse_json_object(answer)
        if data is None:
            logger.warning("completion_json_parse_failed", operation="analyze_structure")
            return StructureAnalysisResult(
                document_type=document_type,
                confidence=_UNPARSED_CONFIDENCE,
                raw_response=answer,
            )

        sections: list[SectionInfo] = []
        for item in data.get("sections") or []:
            if not isinstance(item, dict):
                continue
            sections.append(
                SectionInfo(
                    title=str(item.get("title") or ""),
                    level=max(1, min(6, _as_int(item.get("level"), 1))),
                    start_position=max(0, _as_int(item.get("startPosition"))),
                    end_position=max(0, _as_int(item.get("endPosition"))),
                    importance=_as_score(item.get("importance"), 0.5),
                )
            )
        return StructureAnalysisResult(
            document_type=str(data.get("documentType") or document_type),
            sections=sections,
            confidence=_as_score(data.get("confidence")),
            raw_response=answer,
        )

    async def summarize(self, text: str, max_length: int = 200) -> ContentSummary:
        prompt = (
            f"Summarize the passage below in at most {max_length} characters and "
            'list up to five keywords. Answer as JSON with keys "summary", '
            '"keywords" and "confidence" (0-1).\n\n'
            f"Passage:\n{text[:_MAX_PROMPT_TEXT]}"
        )
        answer = await self._chat(_SUMMARY_SYSTEM, prompt)
        data = parse_json_object(answer)
        if data is None or not str(data.get("summary") or "").strip():
            logger.warning("completion_json_parse_failed", operation="summarize")
            return ContentSummary(
                summary=answer.strip()[:max_length],
                confidence=_UNPARSED_CONFIDENCE,
                original_length=len(text),
            )
        return ContentSummary(
            summary=str(data["summary"]).strip()[:max_length],
            keywords=_as_str_list(data.get("keywords")),
            confidence=_as_score(data.get("confidence")),
            original_length=len(text),
        )

    async def extract_metadata(
        self, text: str, document_type: str = "general"
    ) -> MetadataExtractionResult:
        prompt = (
            f"Document type: {document_type}\n"
            'Extract metadata from the document below as JSON with keys "keywords", '
            '"language" (ISO 639-1 code), "categories", "entities" (object mapping an '
            'entity kind to a list of names) and "confidence" (0-1).\n\n'
            f"Document:\n{text[:_MAX_PROMPT_TEXT]}"
        )
        answer = await self._chat(_METADATA_SYSTEM, prompt)
        data = parse_json_object(answer)
        if data is None:
            logger.warning("completion_json_parse_failed", operation="extract_metadata")
            return MetadataExtractionResult(confidence=_UNPARSED_CONFIDENCE)

        raw_entities = data.get("entities")
        entities: dict[str, list[str]] = {}
        if isinstance(raw_entities, dict):
            for kind, names in raw_entities.items():
                values = _as_str_list(names)
                if values:
                    entities[str(kind)] = values
        language = data.get("language")
        return MetadataExtractionResult(
            keywords=_as_str_list(data.get("keywords")),
            language=str(language) if language else None,
            categories=_as_str_list(data.get("categories")),
            entities=entities,
            confidence=_as_score(data.get("confidence")),
        )

    async def assess_quality(self, text: str) -> QualityAssessment:
        prompt = (
            "Assess how well the text below was extracted from its source document. "
            'Answer as JSON with keys "confidenceScore", "completenessScore", '
            '"consistencyScore" (each 0-1) and "explanation".\n\n'
            f"Text:\n{text[:_MAX_PROMPT_TEXT]}"
        )
        answer = await self._chat(_QUALITY_SYSTEM, prompt)
        data = parse_json_object(answer)
        if data is None:
            logger.warning("completion_json_parse_failed", operation="assess_quality")
            return QualityAssessment(
                confidence_score=_UNPARSED_CONFIDENCE,
                completeness_score=_UNPARSED_CONFIDENCE,
                consistency_score=_UNPARSED_CONFIDENCE,
                explanation="Model answer was not valid JSON",
            )
        return QualityAssessment(
            confidence_score=_as_score(data.get("confidenceScore")),
            completeness_score=_as_score(data.get("completenessScore")),
            consistency_score=_as_score(data.get("consistencyScore")),
            explanation=str(data.get("explanation") or ""),
        )
