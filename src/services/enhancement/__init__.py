"""Optional LLM enrichment of chunks."""

from src.services.enhancement.chunk_enhancer import ChunkEnhancer

__all__ = ["ChunkEnhancer"]
