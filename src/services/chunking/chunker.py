"""Character-based chunking engine with overlapping windows.

Splits refined markdown into :class:`RawChunk` slices according to one
concrete :class:`~src.models.chunk.ChunkingStrategy`.  Every strategy works
the same way underneath:

1. **Units** -- the text is cut into stripped ``(start, end)`` spans
   (sentences, paragraphs, sections, fixed windows).  Fenced code blocks
   and pipe tables are always single, indivisible units.
2. **Packing** -- units are accumulated greedily until the next one would
   push the chunk past the target size (``target_chunk_size``, capped by
   ``max_chunk_size``); the chunk is then flushed and the
   next one starts with the trailing units of the previous chunk whose span
   fits in ``overlap_size``.
3. **Merging** -- chunks shorter than ``min_chunk_size`` are folded into a
   neighbour when the result still fits.

Chunk content is always ``text[start:end]`` of the input, so chunks are
contiguous, non-destructive slices ordered by start offset.  A unit that is
on its own larger than ``max_chunk_size`` (a long sentence when sentences
must be preserved, a big code block) is emitted alone and flagged
``oversized``.
"""

from __future__ import annotations

import re
from typing import Callable, NamedTuple

import structlog

from src.models.chunk import ChunkingStrategy, ChunkOptions
from src.services.chunking.strategy_selector import StrategySelector
from src.services.quality.text_metrics import extract_terms, jaccard
from src.services.refinement.structure_extractor import build_sections, code_spans
from src.utils.cancellation import CancellationToken, check_cancelled

logger = structlog.get_logger(logger_name=__name__)

_STAGE = "chunking"

# Periods after these words do not end a sentence ("Dr. Smith").
_ABBREVIATION_DOT = re.compile(
    r"\b(?:Dr|Mr|Mrs|Ms|Prof|Jr|Sr|St|Ave|Blvd|Vol|No|vs|etc|approx|dept|est|govt|"
    r"inc|ltd|co|ft|e\.g|i\.e|Fig|Eq|Sec|cf)\.",
)
_SENTENCE_END = re.compile(r"[.!?。](?=\s|$)")
# Line starts that always begin a new unit inside a paragraph.
_LINE_BREAK_UNIT = re.compile(r"\n(?=[ \t]*(?:[-*+][ \t]|\d+\.[ \t]|#|\|))")
_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
# Matched at a unit start, so no "^" anchor.
_ATOMIC_START = re.compile(r"```|\|")

_SEMANTIC_BREAK_THRESHOLD = 0.1


class RawChunk(NamedTuple):
    """One chunk produced by the engine, before identity and scores are stamped."""

    content: str
    start: int
    end: int
    oversized: bool = False


class _Unit(NamedTuple):
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


# A predicate deciding whether a chunk must end before ``unit``.
_BreakRule = Callable[[str, list[_Unit], _Unit], bool]


class ChunkingEngine:
    """Runs one concrete chunking strategy under a :class:`ChunkOptions` policy.

    Parameters
    ----------
    options:
        Size and boundary policy.  ``options.strategy`` is used when
        :meth:`split` is called without an explicit strategy.
    """

    def __init__(self, options: ChunkOptions | None = None) -> None:
        self._options = options or ChunkOptions()

    @property
    def options(self) -> ChunkOptions:
        return self._options

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(
        self,
        text: str,
        strategy: ChunkingStrategy | None = None,
        cancel: CancellationToken | None = None,
    ) -> list[RawChunk]:
        """Split *text* into ordered :class:`RawChunk` slices.

        ``AUTO`` is resolved with :class:`StrategySelector`.  Empty or
        whitespace-only text yields an empty list.
        """
        if not text or not text.strip():
            return []

        strategy = strategy or self._options.strategy
        if strategy is ChunkingStrategy.AUTO:
            strategy = StrategySelector(self._options).select(text)

        if strategy is ChunkingStrategy.TOKEN:
            chunks = self._token_windows(text, cancel)
        elif strategy is ChunkingStrategy.HIERARCHICAL:
            chunks = self._hierarchical(text, cancel)
        elif strategy is ChunkingStrategy.SEMANTIC:
            chunks = self._pack(text, self._paragraph_units(text), cancel, self._semantic_break)
        elif strategy is ChunkingStrategy.SENTENCE:
            chunks = self._pack(text, self._sentence_units(text), cancel)
        else:
            chunks = self._pack(text, self._paragraph_units(text), cancel)

        chunks = self._merge_small(text, chunks)
        logger.debug(
            "chunking_complete",
            strategy=strategy.value,
            num_chunks=len(chunks),
            oversized=sum(1 for c in chunks if c.oversized),
        )
        return chunks

    # ------------------------------------------------------------------
    # Unit builders
    # ------------------------------------------------------------------

    def _paragraph_units(self, text: str, start: int = 0, end: int | None = None) -> list[_Unit]:
        """Paragraph units; paragraphs that do not fit fall back to sentences."""
        units: list[_Unit] = []
        limit = self._options.max_chunk_size
        for paragraph in _paragraphs(text, start, end):
            if _is_atomic(text, paragraph):
                units.append(paragraph)
            elif self._options.preserve_paragraphs and paragraph.length <= limit:
                units.append(paragraph)
            else:
                units.extend(self._split_paragraph(text, paragraph))
        return units

    def _sentence_units(self, text: str) -> list[_Unit]:
        units: list[_Unit] = []
        for paragraph in _paragraphs(text):
            if _is_atomic(text, paragraph):
                units.append(paragraph)
            else:
                units.extend(self._split_paragraph(text, paragraph))
        return units

    def _split_paragraph(self, text: str, paragraph: _Unit) -> list[_Unit]:
        """Sentence units of one paragraph; oversized sentences are word-split
        unless sentences must be preserved."""
        limit = self._options.max_chunk_size
        units: list[_Unit] = []
        for sentence in _sentences(text, paragraph):
            if sentence.length > limit and not self._options.preserve_sentences:
                units.extend(_word_windows(text, sentence, limit))
            else:
                units.append(sentence)
        return units

    # ------------------------------------------------------------------
    # Packing
    # ------------------------------------------------------------------

    def _pack(
        self,
        text: str,
        units: list[_Unit],
        cancel: CancellationToken | None,
        break_rule: _BreakRule | None = None,
    ) -> list[RawChunk]:
        """Greedily accumulate *units* into chunks with trailing-unit overlap.

        Chunks are flushed once the next unit would pass the effective target
        size; only a single unit may run up to ``max_chunk_size`` before it
        is treated as oversized.
        """
        limit = self._options.max_chunk_size
        target = self._options.effective_target
        chunks: list[RawChunk] = []
        current: list[_Unit] = []
        fresh = 0  # units in ``current`` not already emitted as overlap

        for unit in units:
            check_cancelled(cancel, _STAGE)

            if unit.length > limit:
                if fresh:
                    chunks.append(_make_chunk(text, current))
                chunks.append(RawChunk(text[unit.start : unit.end], unit.start, unit.end, True))
                current, fresh = [], 0
                continue

            if current and fresh:
                forced = break_rule is not None and break_rule(text, current, unit)
                if forced or unit.end - current[0].start > target:
                    chunks.append(_make_chunk(text, current))
                    current = [] if forced else self._overlap_tail(current, unit)
                    fresh = 0

            current.append(unit)
            fresh += 1

        if fresh:
            chunks.append(_make_chunk(text, current))
        return chunks

    def _overlap_tail(self, current: list[_Unit], upcoming: _Unit) -> list[_Unit]:
        """Trailing units of *current* to repeat at the head of the next chunk.

        The first unit of *current* is never repeated, so every chunk starts
        strictly after the previous one.
        """
        overlap = self._options.overlap_size
        if overlap <= 0 or len(current) < 2:
            return []
        tail_end = current[-1].end
        tail: list[_Unit] = []
        for unit in reversed(current[1:]):
            if tail_end - unit.start > overlap:
                break
            if upcoming.end - unit.start > self._options.max_chunk_size:
                break
            tail.insert(0, unit)
        return tail

    def _semantic_break(self, text: str, current: list[_Unit], unit: _Unit) -> bool:
        # Only break once the chunk is big enough to stand alone.
        if current[-1].end - current[0].start < self._options.min_chunk_size:
            return False
        if text.startswith("#", unit.start):
            return True
        # A heading stays with the paragraph it introduces.
        if text.startswith("#", current[-1].start):
            return False
        previous_terms = set(extract_terms(text[current[-1].start : current[-1].end]))
        next_terms = set(extract_terms(text[unit.start : unit.end]))
        if not previous_terms or not next_terms:
            return False
        return jaccard(previous_terms, next_terms) < _SEMANTIC_BREAK_THRESHOLD

    # ------------------------------------------------------------------
    # Token and hierarchical strategies
    # ------------------------------------------------------------------

    def _token_windows(self, text: str, cancel: CancellationToken | None) -> list[RawChunk]:
        """Fixed windows of ``max_chunk_size`` moving by ``max - overlap``.

        Window ends snap back to whitespace when one exists in the second
        half of the window; starts snap forward to the next word.
        """
        limit = self._options.max_chunk_size
        overlap = self._options.overlap_size
        bounds = _strip(text, 0, len(text))
        if bounds is None:
            return []
        position, text_end = bounds.start, bounds.end

        chunks: list[RawChunk] = []
        while position < text_end:
            check_cancelled(cancel, _STAGE)
            end = min(position + limit, text_end)
            if end < text_end and not text[end].isspace():
                cut = max(text.rfind(" ", position, end), text.rfind("\n", position, end))
                if cut > position + limit // 2:
                    end = cut
            window = _strip(text, position, end)
            if window is not None:
                chunks.append(RawChunk(text[window.start : window.end], window.start, window.end))
            if end >= text_end:
                break
            next_position = max(end - overlap, position + 1)
            if next_position < end and not text[next_position - 1].isspace():
                space = _next_space(text, next_position, end)
                next_position = space if space is not None else end
            while next_position < text_end and text[next_position].isspace():
                next_position += 1
            position = next_position
        return chunks

    def _hierarchical(self, text: str, cancel: CancellationToken | None) -> list[RawChunk]:
        """Pack each heading-delimited section on its own; no overlap across sections."""
        sections = build_sections(text)
        groups: list[tuple[int, int]] = []
        first_start = sections[0].start if sections else len(text)
        if first_start > 0:
            groups.append((0, first_start))
        groups.extend((section.start, section.end) for section in sections)

        chunks: list[RawChunk] = []
        for start, end in groups:
            check_cancelled(cancel, _STAGE)
            units = self._paragraph_units(text, start, end)
            if units:
                chunks.extend(self._pack(text, units, cancel))
        return chunks

    # ------------------------------------------------------------------
    # Post-processing
    # ------------------------------------------------------------------

    def _merge_small(self, text: str, chunks: list[RawChunk]) -> list[RawChunk]:
        """Fold chunks shorter than ``min_chunk_size`` into their neighbour."""
        minimum = self._options.min_chunk_size
        limit = self._options.max_chunk_size
        if minimum <= 0 or len(chunks) < 2:
            return chunks

        def mergeable(first: RawChunk, second: RawChunk) -> bool:
            return (
                not first.oversized
                and not second.oversized
                and second.end - first.start <= limit
            )

        merged: list[RawChunk] = []
        for chunk in chunks:
            previous = merged[-1] if merged else None
            if previous is not None and len(previous.content) < minimum and mergeable(previous, chunk):
                merged[-1] = RawChunk(text[previous.start : chunk.end], previous.start, chunk.end)
            else:
                merged.append(chunk)

        if len(merged) >= 2 and len(merged[-1].content) < minimum and mergeable(merged[-2], merged[-1]):
            last = merged.pop()
            previous = merged.pop()
            merged.append(RawChunk(text[previous.start : last.end], previous.start, last.end))
        return merged


# ----------------------------------------------------------------------
# Span helpers
# ----------------------------------------------------------------------

def _strip(text: str, start: int, end: int) -> _Unit | None:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return _Unit(start, end) if end > start else None


def _next_space(text: str, start: int, end: int) -> int | None:
    for index in range(start, end):
        if text[index].isspace():
            return index
    return None


def _is_atomic(text: str, unit: _Unit) -> bool:
    return bool(_ATOMIC_START.match(text, unit.start))


def _make_chunk(text: str, units: list[_Unit]) -> RawChunk:
    start, end = units[0].start, units[-1].end
    return RawChunk(text[start:end], start, end)


def _paragraphs(text: str, start: int = 0, end: int | None = None) -> list[_Unit]:
    """Blank-line separated paragraphs; blank lines inside code fences do not split."""
    end = len(text) if end is None else end
    fences = [span for span in code_spans(text) if span[0] < end and span[1] > start]
    units: list[_Unit] = []
    position = start
    for match in _PARAGRAPH_BREAK.finditer(text, start, end):
        if any(s < match.start() < e for s, e in fences):
            continue
        unit = _strip(text, position, match.start())
        if unit is not None:
            units.append(unit)
        position = match.end()
    tail = _strip(text, position, end)
    if tail is not None:
        units.append(tail)
    return units


def _sentences(text: str, paragraph: _Unit) -> list[_Unit]:
    """Abbreviation-aware sentence spans inside *paragraph*.

    Abbreviation periods are masked with ``\\x00`` (same length, so offsets
    stay aligned).  List items, headings and table rows that share a
    paragraph with prose also start a new unit.
    """
    segment = text[paragraph.start : paragraph.end]
    masked = _ABBREVIATION_DOT.sub(lambda m: m.group(0)[:-1] + "\x00", segment)

    cuts = {m.end() for m in _SENTENCE_END.finditer(masked)}
    cuts.update(m.start() for m in _LINE_BREAK_UNIT.finditer(masked))

    units: list[_Unit] = []
    last = 0
    for cut in sorted(cuts):
        unit = _strip(text, paragraph.start + last, paragraph.start + cut)
        if unit is not None:
            units.append(unit)
        last = cut
    tail = _strip(text, paragraph.start + last, paragraph.end)
    if tail is not None:
        units.append(tail)
    return units


def _word_windows(text: str, unit: _Unit, limit: int) -> list[_Unit]:
    """Cut an oversized unit at whitespace into pieces of at most *limit* chars."""
    pieces: list[_Unit] = []
    position = unit.start
    while position < unit.end:
        end = min(position + limit, unit.end)
        if end < unit.end:
            cut = max(text.rfind(" ", position, end), text.rfind("\n", position, end))
            if cut > position:
                end = cut
        piece = _strip(text, position, end)
        if piece is not None:
            pieces.append(piece)
        position = end
    return pieces
