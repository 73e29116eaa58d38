"""Abstract base class for external markdown converters.

The refiner builds markdown itself whenever a reader supplied tables or
classified blocks.  For flat text only, it may hand the whole
:class:`~src.models.raw.RawContent` to a converter implementing this
contract; an unsuccessful result leaves the raw text in place.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.models.completion import MarkdownConversionOptions, MarkdownConversionResult
    from src.models.raw import RawContent


# Concrete implementation: LLMMarkdownConverter (src/providers/markdown/)
class IMarkdownConverter(ABC):
    """Contract for raw-content-to-markdown converters."""

    @abstractmethod
    async def convert(
        self,
        raw: RawContent,
        options: MarkdownConversionOptions | None = None,
    ) -> MarkdownConversionResult:
        """Convert *raw* into markdown.

        Returns
        -------
        MarkdownConversionResult
            ``success`` is ``False`` when the converter could not produce
            usable markdown; callers then keep the raw text.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the converter can be used."""
