"""Small text heuristics shared by chunk scoring and the RAG quality analyzer.

Every function accepts empty or whitespace-only input and returns a
neutral value (``0``, ``False``, ``[]``) instead of raising.
"""

from __future__ import annotations

import re

STOPWORDS = frozenset(
    {
        "the", "is", "at", "which", "on", "and", "a", "an", "as", "are",
        "was", "were", "been", "be", "have", "has", "had", "do", "does",
        "did", "will", "would", "could", "should", "may", "might", "must",
        "can", "to", "of", "in", "for", "with", "by", "from", "about",
    }
)

CONTINUITY_MARKERS = (
    "however",
    "therefore",
    "moreover",
    "furthermore",
    "additionally",
    "consequently",
    "thus",
    "hence",
)

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+(?=[A-Z])")
_TERM_SPLIT = re.compile(r"[ \t\n\r.,!?;:\"'()]+")
_WORD_PUNCTUATION = ".,!?;:\"'()[]{}*`"
_LEADING_PRONOUN = re.compile(r"^(?:he|she|it|they|this|that|these|those)\b", re.IGNORECASE)
_NUMBERED_START = re.compile(r"^\d+\.")
_SENTENCE_BOUNDARY = re.compile(r"[.!?](?:\s|$)")


# ------------------------------------------------------------------
# Sentences
# ------------------------------------------------------------------

def split_sentences(text: str) -> list[str]:
    stripped = text.strip()
    if not stripped:
        return []
    return [s.strip() for s in _SENTENCE_SPLIT.split(stripped) if s.strip()]


def is_complete_sentence(sentence: str) -> bool:
    stripped = sentence.strip()
    return len(stripped) > 10 and stripped[-1] in ".!?:"


def is_complete_thought(text: str) -> bool:
    """At least two sentences, all complete, and more than 100 characters."""
    sentences = split_sentences(text)
    return (
        len(sentences) >= 2
        and all(is_complete_sentence(s) for s in sentences)
        and len(text.strip()) > 100
    )


def is_orphaned(text: str) -> bool:
    stripped = text.strip()
    return len(stripped) < 50 or not any(mark in stripped for mark in ".!?")


def boundary_score(text: str) -> float:
    """0.5 for a capitalized start plus 0.5 for terminal punctuation."""
    stripped = text.strip()
    if not stripped:
        return 0.0
    score = 0.0
    if stripped[0].isupper():
        score += 0.5
    if stripped[-1] in ".!?":
        score += 0.5
    return score


def crosses_sentence_boundary(text: str) -> bool:
    return bool(_SENTENCE_BOUNDARY.search(text))


# ------------------------------------------------------------------
# Terms
# ------------------------------------------------------------------

def extract_terms(text: str) -> list[str]:
    """Lower-cased terms longer than two characters, stop-words removed."""
    return [
        term
        for term in _TERM_SPLIT.split(text.lower())
        if len(term) > 2 and term not in STOPWORDS
    ]


def token_density(text: str) -> float:
    """Share of words longer than three characters that are not stop-words."""
    words = text.split()
    if not words:
        return 0.0
    informative = 0
    for word in words:
        cleaned = word.strip(_WORD_PUNCTUATION).lower()
        if len(cleaned) > 3 and cleaned not in STOPWORDS:
            informative += 1
    return informative / len(words)


def jaccard(first: set[str], second: set[str]) -> float:
    union = first | second
    if not union:
        return 0.0
    return len(first & second) / len(union)


# ------------------------------------------------------------------
# Chunk boundaries
# ------------------------------------------------------------------

def get_overlap_length(
    previous: str, current: str, max_length: int = 256, min_length: int = 10
) -> int:
    """Length of the longest prefix of *current* that is a suffix of *previous*.

    Candidate sizes are scanned from ``min(max_length, len(previous),
    len(current))`` down to *min_length*; ``0`` means no overlap of at
    least *min_length* characters.
    """
    limit = min(max_length, len(previous), len(current))
    for size in range(limit, max(1, min_length) - 1, -1):
        if previous.endswith(current[:size]):
            return size
    return 0


def continuity_score(text: str) -> float:
    """1.0 when a discourse marker opens the chunk or follows a space, else 0.5."""
    lowered = text.lower()
    for marker in CONTINUITY_MARKERS:
        if lowered.startswith(marker) or f" {marker}" in lowered:
            return 1.0
    return 0.5


def starts_with_pronoun(text: str) -> bool:
    return bool(_LEADING_PRONOUN.match(text.lstrip()))


def is_clean_start(text: str) -> bool:
    stripped = text.lstrip()
    if not stripped:
        return False
    return stripped[0].isupper() or stripped.startswith("#") or bool(_NUMBERED_START.match(stripped))


def is_clean_end(text: str) -> bool:
    stripped = text.rstrip()
    if not stripped:
        return False
    return stripped[-1] in ".!?" or stripped.endswith("```")
