"""Image-to-text adapters implementing IImageToTextService."""

from src.providers.vision.llm_image_to_text import LLMImageToTextService

__all__ = ["LLMImageToTextService"]
