"""Abstract base class for text-completion (LLM) collaborators.

The core never calls a model directly.  Structure analysis, summarization,
metadata extraction and quality assessment all go through this contract, so
an OpenAI-compatible endpoint, a local Ollama server or a test double can be
swapped in without touching the enhancement stage.

Absence is a first-class state: callers check :meth:`is_available` and skip
enrichment when it returns ``False`` instead of treating it as an error.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.completion import (
    ContentSummary,
    MetadataExtractionResult,
    QualityAssessment,
    StructureAnalysisResult,
)


# Concrete implementations: OpenAICompletionService, OllamaCompletionService
# Located in: src/providers/completion/
class ITextCompletionService(ABC):
    """Contract for LLM-backed text services used by optional enrichment."""

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Return the model's free-text answer to *prompt*.

        Raises
        ------
        src.utils.errors.CompletionServiceError
            If the API call fails or returns an empty response.
        """

    @abstractmethod
    async def analyze_structure(
        self, text: str, document_type: str = "general"
    ) -> StructureAnalysisResult:
        """Detect the section layout of *text* with a confidence estimate."""

    @abstractmethod
    async def summarize(self, text: str, max_length: int = 200) -> ContentSummary:
        """Summarize *text* in at most *max_length* characters plus keywords."""

    @abstractmethod
    async def extract_metadata(
        self, text: str, document_type: str = "general"
    ) -> MetadataExtractionResult:
        """Extract keywords, categories and named entities from *text*."""

    @abstractmethod
    async def assess_quality(self, text: str) -> QualityAssessment:
        """Score *text* for confidence, completeness and consistency."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the service is configured.

        Implementations check credentials/URLs without making a model call.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"openai"`` or ``"ollama"``."""
