"""RAG quality analysis for chunk sets."""

from src.services.quality.analyzer import METRIC_WEIGHTS, RAGQualityAnalyzer

__all__ = ["METRIC_WEIGHTS", "RAGQualityAnalyzer"]
