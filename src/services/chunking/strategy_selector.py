"""Resolution of the ``auto`` chunking strategy.

The choice depends only on the text and the options, so identical input
always resolves to the same concrete strategy.
"""

from __future__ import annotations

import re

import structlog

from src.models.chunk import ChunkingStrategy, ChunkOptions

logger = structlog.get_logger(logger_name=__name__)

_SAMPLE_SIZE = 10_000
_MIN_HEADINGS = 3
_MIN_NUMBERED_SECTIONS = 5
_LONG_PARAGRAPH_AVERAGE = 300
_SHORT_PARAGRAPH = 20

_HEADING_LINE = re.compile(r"^#{1,6}[ \t]+\S", re.MULTILINE)
_NUMBERED_SECTION_LINE = re.compile(
    r"^(?:\d+(?:[.-]\d+)*\.|\([0-9]+\)|[①②③④⑤⑥⑦⑧⑨⑩])\s+", re.MULTILINE
)
_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


class StrategySelector:
    """Picks a concrete strategy from document size and structure.

    Rules, first match wins:

    1. The whole document fits in one chunk -> ``paragraph``.
    2. Three or more markdown headings -> ``hierarchical``.
    3. Five or more numbered-section lines -> ``paragraph``.
    4. Long paragraphs (average over 300 characters) -> ``paragraph``, unless
       they are on average larger than a chunk, where ``sentence`` packs better.
    5. Otherwise -> ``sentence``.

    Only the first 10 000 characters are inspected for rules 2-4.
    """

    def __init__(self, options: ChunkOptions | None = None) -> None:
        self._options = options or ChunkOptions()

    def select(self, text: str) -> ChunkingStrategy:
        strategy, reason = self._decide(text)
        logger.debug("auto_strategy_selected", strategy=strategy.value, reason=reason)
        return strategy

    def _decide(self, text: str) -> tuple[ChunkingStrategy, str]:
        if len(text.strip()) <= self._options.max_chunk_size:
            return ChunkingStrategy.PARAGRAPH, "fits_single_chunk"

        sample = text[:_SAMPLE_SIZE]
        if len(_HEADING_LINE.findall(sample)) >= _MIN_HEADINGS:
            return ChunkingStrategy.HIERARCHICAL, "markdown_headings"
        if len(_NUMBERED_SECTION_LINE.findall(sample)) >= _MIN_NUMBERED_SECTIONS:
            return ChunkingStrategy.PARAGRAPH, "numbered_sections"

        paragraphs = [
            p.strip() for p in _PARAGRAPH_BREAK.split(sample) if len(p.strip()) > _SHORT_PARAGRAPH
        ]
        if paragraphs:
            average = sum(len(p) for p in paragraphs) / len(paragraphs)
            if average > self._options.max_chunk_size:
                return ChunkingStrategy.SENTENCE, "paragraphs_exceed_chunk"
            if average > _LONG_PARAGRAPH_AVERAGE:
                return ChunkingStrategy.PARAGRAPH, "long_paragraphs"
        return ChunkingStrategy.SENTENCE, "default"
