"""Confidence scoring utilities for enrichment results.

Language-model enrichment assigns every field a score between 0 and 100.
This module provides the three operations the pipeline needs on those
numbers:

1. **calculate_confidence** -- Weighted average of several field scores.
   Used to derive ``overall`` when a provider omits it.
2. **clamp_score** -- Coerces an arbitrary provider value into ``0..100``.
3. **confidence_to_level** -- Maps a score to a display tier
   (LOW / MEDIUM / HIGH) that the review gate renders next to each field.
"""

from enum import Enum

MIN_SCORE = 0.0
MAX_SCORE = 100.0


class ConfidenceLevel(Enum):
    """Display tiers for a 0..100 confidence score."""

    LOW = "low"        # < 50 -- an estimate, verify manually
    MEDIUM = "medium"  # 50 - 80 -- plausible, spot-check
    HIGH = "high"      # >= 80 -- backed by an official source

    @property
    def label(self) -> str:
        """French label shown by the generic enrichment client."""
        return _GENERIC_LABELS[self]

    @property
    def source_label(self) -> str:
        """French label shown by the sourced enrichment client."""
        return _SOURCED_LABELS[self]


_GENERIC_LABELS = {
    ConfidenceLevel.HIGH: "Haute confiance",
    ConfidenceLevel.MEDIUM: "Confiance moyenne",
    ConfidenceLevel.LOW: "Faible confiance",
}

_SOURCED_LABELS = {
    ConfidenceLevel.HIGH: "Source officielle",
    ConfidenceLevel.MEDIUM: "À vérifier",
    ConfidenceLevel.LOW: "Estimation",
}


def clamp_score(value: object) -> float:
    """Coerce *value* to a float in ``[0, 100]``.

    Non-numeric values (``None``, strings that do not parse, nested
    objects) are treated as zero confidence rather than rejected.
    """
    if isinstance(value, bool):
        return MIN_SCORE
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return MIN_SCORE
    if number != number:  # NaN
        return MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, number))


def calculate_confidence(
    scores: list[float],
    weights: list[float] | None = None,
) -> float:
    """Compute a weighted average confidence score.

    Args:
        scores: Individual confidence scores, each in [0, 100].
        weights: Optional weights for each score. Defaults to equal weighting.

    Returns:
        Weighted average clamped to [0, 100].

    Raises:
        ValueError: If scores is empty or lengths of scores and weights differ.
    """
    if not scores:
        raise ValueError("scores must not be empty")

    if weights is None:
        weights = [1.0] * len(scores)

    if len(scores) != len(weights):
        raise ValueError("scores and weights must have the same length")

    total_weight = sum(weights)
    if total_weight == 0:
        return MIN_SCORE

    weighted_sum = sum(s * w for s, w in zip(scores, weights, strict=True))
    return max(MIN_SCORE, min(MAX_SCORE, weighted_sum / total_weight))


def confidence_to_level(score: float) -> ConfidenceLevel:
    """Map a 0..100 score to its display tier.

    Args:
        score: Confidence score in [0, 100].

    Returns:
        Corresponding ConfidenceLevel enum member.
    """
    if score >= 80:
        return ConfidenceLevel.HIGH
    if score >= 50:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW
