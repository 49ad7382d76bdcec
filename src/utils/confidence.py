"""Confidence scoring utilities for chunk enrichment.

The metadata extractor asks the LLM to label every extracted entity and
relationship with a confidence level (``high``, ``medium``, ``low``) and
every intelligence category with a 0--100 score.  This module turns those
signals into the single ``confidence_score`` stored on each chunk:

1. **label_to_score** -- maps a confidence label to a number.
2. **average_label_confidence** -- mean label score for one kind of item.
3. **classification_confidence** -- mean category score rescaled to [0, 1].
4. **calculate_confidence** -- weighted average, clamped to [0, 1].
5. **enrichment_confidence** -- the 0.4 / 0.4 / 0.2 blend of the above.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class ConfidenceLevel(str, Enum):  # noqa: UP042
    """Confidence labels the extraction prompts ask the LLM to emit."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


_LEVEL_SCORES: dict[ConfidenceLevel, float] = {
    ConfidenceLevel.HIGH: 1.0,
    ConfidenceLevel.MEDIUM: 0.6,
    ConfidenceLevel.LOW: 0.3,
}

# Entity, relationship, classification.
ENRICHMENT_WEIGHTS: tuple[float, float, float] = (0.4, 0.4, 0.2)


def label_to_score(label: object) -> float:
    """Map a confidence label to its numeric score.

    Unknown or missing labels count as ``low``.
    """
    try:
        level = ConfidenceLevel(str(label).strip().lower())
    except ValueError:
        level = ConfidenceLevel.LOW
    return _LEVEL_SCORES[level]


def average_label_confidence(labels: Iterable[object]) -> float:
    """Return the mean label score, or 0.0 for an empty input."""
    scores = [label_to_score(label) for label in labels]
    if not scores:
        return 0.0
    return sum(scores) / len(scores)


def classification_confidence(values: Iterable[float]) -> float:
    """Return the mean of 0--100 category scores divided by 100."""
    scores = list(values)
    if not scores:
        return 0.0
    return sum(scores) / (len(scores) * 100)


def calculate_confidence(
    scores: list[float],
    weights: list[float] | None = None,
) -> float:
    """Compute a weighted average confidence score.

    Args:
        scores: Individual confidence scores.
        weights: Optional weights for each score.  Defaults to equal weighting.

    Returns:
        Weighted average clamped to [0.0, 1.0].

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
        return 0.0

    weighted_sum = sum(s * w for s, w in zip(scores, weights, strict=True))
    return max(0.0, min(1.0, weighted_sum / total_weight))


def enrichment_confidence(
    entity_labels: Iterable[object],
    relationship_labels: Iterable[object],
    category_scores: Iterable[float],
) -> float:
    """Blend entity, relationship and classification confidence for a chunk.

    Returns ``0.4 * entity + 0.4 * relationship + 0.2 * classification``
    clamped to [0, 1].
    """
    return calculate_confidence(
        [
            average_label_confidence(entity_labels),
            average_label_confidence(relationship_labels),
            classification_confidence(category_scores),
        ],
        weights=list(ENRICHMENT_WEIGHTS),
    )
