"""Text completion adapters implementing ITextCompletionService."""

from src.providers.completion.base_completion_service import (
    BaseCompletionService,
    parse_json_object,
)
from src.providers.completion.ollama_completion_service import OllamaCompletionService
from src.providers.completion.openai_completion_service import OpenAICompletionService

__all__ = [
    "BaseCompletionService",
    "OllamaCompletionService",
    "OpenAICompletionService",
    "parse_json_object",
]
