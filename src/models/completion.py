"""Request/response records for the optional LLM-backed collaborators.

These are the payloads exchanged through
:class:`~src.interfaces.text_completion_service.ITextCompletionService`,
:class:`~src.interfaces.image_to_text_service.IImageToTextService` and
:class:`~src.interfaces.markdown_converter.IMarkdownConverter`.  The core
never depends on how a collaborator fills them in.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SectionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    level: int = Field(default=1, ge=1, le=6)
    start_position: int = 0
    end_position: int = 0
    importance: float = Field(default=0.5, ge=0.0, le=1.0)


class StructureAnalysisResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    document_type: str = "general"
    sections: list[SectionInfo] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    raw_response: str = ""


class ContentSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str = ""
    keywords: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    original_length: int = 0

    @property
    def compression_ratio(self) -> float:
        if self.original_length <= 0:
            return 0.0
        return len(self.summary) / self.original_length


class MetadataExtractionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    keywords: list[str] = Field(default_factory=list)
    language: str | None = None
    categories: list[str] = Field(default_factory=list)
    entities: dict[str, list[str]] = Field(default_factory=dict)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class QualityAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    completeness_score: float = Field(default=0.0, ge=0.0, le=1.0)
    consistency_score: float = Field(default=0.0, ge=0.0, le=1.0)
    explanation: str = ""

    @property
    def overall_score(self) -> float:
        return (self.confidence_score + self.completeness_score + self.consistency_score) / 3.0


class ImageToTextOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: str = "auto"
    image_type_hint: str | None = None
    extract_structure: bool = True


class ImageToTextResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.error_message is None and bool(self.text.strip())


class ConversionMethod(str, Enum):
    HEURISTIC = "heuristic"
    LLM = "llm"
    MIXED = "mixed"


class MarkdownConversionOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    preserve_headings: bool = True
    convert_tables: bool = True
    preserve_lists: bool = True
    use_llm_inference: bool = False


class MarkdownConversionResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    markdown: str = ""
    success: bool = False
    method: ConversionMethod = ConversionMethod.HEURISTIC
    warnings: list[str] = Field(default_factory=list)
