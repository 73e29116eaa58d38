"""Chunking stage: RefinedContent -> list[DocumentChunk]."""

from src.services.chunking.chunk_service import ChunkService
from src.services.chunking.chunker import ChunkingEngine, RawChunk
from src.services.chunking.strategy_selector import StrategySelector

__all__ = ["ChunkService", "ChunkingEngine", "RawChunk", "StrategySelector"]
