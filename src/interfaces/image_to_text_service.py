"""Abstract base class for image-to-text collaborators.

Used by the refiner to describe embedded images.  Failures are caught at the
call site and the image is rendered as a plain placeholder instead.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.completion import ImageToTextOptions, ImageToTextResult


# Concrete implementation: LLMImageToTextService (src/providers/vision/)
class IImageToTextService(ABC):
    """Contract for services that turn image bytes into text."""

    @abstractmethod
    async def extract_text(
        self, image_data: bytes, options: ImageToTextOptions | None = None
    ) -> ImageToTextResult:
        """Extract text (or a description) from *image_data*.

        Raises
        ------
        src.utils.errors.CompletionServiceError
            If the underlying model call fails.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the service is configured for use."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier for this service."""
