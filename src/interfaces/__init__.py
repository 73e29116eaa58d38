"""Public interface definitions for the optional external collaborators.

The core pipeline calls outward only through these abstract base classes.
Concrete adapters live in ``src/providers/`` and are injected through
constructors, so tests can pass a ``MagicMock(spec=...)`` instead.

CONCRETE PROVIDER MAP:
    Interface                 ->  Concrete implementations (in src/providers/)
    ---------------------------------------------------------------------
    ITextCompletionService    ->  OpenAICompletionService, OllamaCompletionService
    IImageToTextService       ->  LLMImageToTextService
    IMarkdownConverter        ->  LLMMarkdownConverter
"""

from src.interfaces.image_to_text_service import IImageToTextService
from src.interfaces.markdown_converter import IMarkdownConverter
from src.interfaces.text_completion_service import ITextCompletionService

__all__ = [
    "IImageToTextService",
    "IMarkdownConverter",
    "ITextCompletionService",
]
