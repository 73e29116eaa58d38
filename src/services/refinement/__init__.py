"""Refinement stage: RawContent -> RefinedContent."""

from src.services.refinement.normalizer import MarkdownNormalizer, NormalizationResult
from src.services.refinement.refiner import DocumentRefiner

__all__ = ["DocumentRefiner", "MarkdownNormalizer", "NormalizationResult"]
