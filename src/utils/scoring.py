"""Score arithmetic shared by the refiner, chunk service and quality analyzer.

Every score in docflux lives in [0.0, 1.0].  Heuristic inputs (empty
chunks, zero-length originals, single-term vocabularies) easily produce
divisions by zero or NaN, so all score math goes through these helpers:

1. **clamp_score** -- Clamp to [0, 1] and map NaN/inf to 0.
2. **safe_ratio** -- Division with an explicit fallback for a zero denominator.
3. **calculate_weighted_score** -- Weighted average renormalized by the
   weights actually supplied, so partial metric sets still score in [0, 1].
4. **score_to_grade** -- Human-readable grade for reports and the CLI.
"""

import math
from enum import Enum


class QualityGrade(Enum):
    """Human-readable quality tiers for composite scores."""

    POOR = "poor"            # < 0.4
    FAIR = "fair"            # 0.4 - 0.6
    GOOD = "good"            # 0.6 - 0.8
    EXCELLENT = "excellent"  # >= 0.8


def clamp_score(value: float) -> float:
    """Clamp *value* to [0.0, 1.0]; NaN and infinities become 0.0."""
    if math.isnan(value) or math.isinf(value):
        return 0.0
    return max(0.0, min(1.0, value))


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Return ``numerator / denominator`` or *default* when the denominator is 0."""
    if denominator == 0:
        return default
    return numerator / denominator


def calculate_weighted_score(
    scores: list[float],
    weights: list[float] | None = None,
) -> float:
    """Compute a weighted average of *scores*, clamped to [0.0, 1.0].

    The sum is divided by the total of the weights present, which lets a
    caller drop a metric and still get a comparable result.

    Args:
        scores: Individual scores, each in [0.0, 1.0].
        weights: Optional weights for each score. Defaults to equal weighting.

    Returns:
        Weighted average, or 0.0 when *scores* is empty or all weights are 0.

    Raises:
        ValueError: If the lengths of scores and weights differ.
    """
    if not scores:
        return 0.0

    if weights is None:
        weights = [1.0] * len(scores)

    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = sum(weights)
    if total_weight == 0:
        return 0.0

    weighted_sum = sum(s * w for s, w in zip(scores, weights, strict=True))
    return clamp_score(weighted_sum / total_weight)


def score_to_grade(score: float) -> QualityGrade:
    """Map a composite score to a :class:`QualityGrade`."""
    if score < 0.4:
        return QualityGrade.POOR
    if score < 0.6:
        return QualityGrade.FAIR
    if score < 0.8:
        return QualityGrade.GOOD
    return QualityGrade.EXCELLENT
