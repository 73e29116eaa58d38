"""Document processing pipeline: refine, chunk, enhance, analyze."""

from src.pipeline.document_pipeline import DocumentPipeline

__all__ = ["DocumentPipeline"]
