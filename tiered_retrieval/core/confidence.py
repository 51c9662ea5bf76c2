"""
Confidence tiers and the display/threshold percentage.

Two raw scales reach the classifier:

- bounded scores in [0, 1] (cosine similarity, heuristic similarity), and
- unbounded lexical relevance scores (small positive numbers).

Both are mapped onto one 0-100 percentage scale with a piecewise-linear curve
so a single threshold can be applied. On the bounded scale the tier boundaries
are anchored to the lexical curve's band edges: low -> 50, high -> 80,
exact -> 95, 1.0 -> 100.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

BOUNDED = "bounded"
LEXICAL = "lexical"

# (raw lower edge, raw upper edge, percentage lower edge, percentage upper edge)
LEXICAL_BANDS: List[Tuple[float, float, float, float]] = [
    (0.0, 1.0, 0.0, 50.0),
    (1.0, 5.0, 50.0, 80.0),
    (5.0, 10.0, 80.0, 95.0),
    (10.0, 20.0, 95.0, 100.0),
]


class ConfidenceTier(str, Enum):
    EXACT = "exact"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    BEST_AVAILABLE = "best-available"


@dataclass(frozen=True)
class Classification:
    tier: ConfidenceTier
    percentage: float
    raw_score: float
    scale: str = BOUNDED


def _interpolate(x: float, points: List[Tuple[float, float]]) -> float:
    """Piecewise-linear interpolation over ascending ``(x, y)`` points, clamped at both ends."""
    if x <= points[0][0]:
        return points[0][1]
    for (x0, y0), (x1, y1) in zip(points, points[1:]):
        if x <= x1:
            if x1 == x0:
                return y1
            return y0 + (y1 - y0) * ((x - x0) / (x1 - x0))
    return points[-1][1]


class ConfidenceClassifier:
    """Maps raw scores to a tier and a monotonic percentage."""

    def __init__(self, exact: float = 0.9, high: float = 0.7, medium: float = 0.5,
                 low: float = 0.4, threshold: float = 80.0):
        if not (0 < low <= medium <= high <= exact < 1):
            raise ValueError("Tier boundaries must satisfy 0 < low <= medium <= high <= exact < 1")
        self.exact = exact
        self.high = high
        self.medium = medium
        self.low = low
        self.threshold = threshold
        self._bounded_curve = [(0.0, 0.0), (low, 50.0), (high, 80.0), (exact, 95.0), (1.0, 100.0)]
        # Percentage at each tier boundary, shared by both scales
        self._tier_percentages = [
            (self.bounded_percentage(exact), ConfidenceTier.EXACT),
            (self.bounded_percentage(high), ConfidenceTier.HIGH),
            (self.bounded_percentage(medium), ConfidenceTier.MEDIUM),
            (self.bounded_percentage(low), ConfidenceTier.LOW),
        ]

    @classmethod
    def from_config(cls, config) -> "ConfidenceClassifier":
        return cls(
            exact=config.tier_exact,
            high=config.tier_high,
            medium=config.tier_medium,
            low=config.tier_low,
            threshold=config.confidence_threshold,
        )

    def bounded_percentage(self, score: float) -> float:
        """Percentage for a score in [0, 1]; values outside are clamped."""
        return _interpolate(min(max(score, 0.0), 1.0), self._bounded_curve)

    @staticmethod
    def lexical_percentage(score: float) -> float:
        """Percentage for an unbounded lexical relevance score."""
        if score <= 0:
            return 0.0
        for lo, hi, p_lo, p_hi in LEXICAL_BANDS:
            if score < hi:
                return p_lo + (p_hi - p_lo) * ((score - lo) / (hi - lo))
        return 100.0

    def tier_for_score(self, score: float) -> ConfidenceTier:
        if score >= self.exact:
            return ConfidenceTier.EXACT
        if score >= self.high:
            return ConfidenceTier.HIGH
        if score >= self.medium:
            return ConfidenceTier.MEDIUM
        if score >= self.low:
            return ConfidenceTier.LOW
        return ConfidenceTier.BEST_AVAILABLE

    def tier_for_percentage(self, percentage: float) -> ConfidenceTier:
        for boundary, tier in self._tier_percentages:
            if percentage >= boundary:
                return tier
        return ConfidenceTier.BEST_AVAILABLE

    def classify(self, raw_score: float, scale: str = BOUNDED) -> Classification:
        """Classify a raw score.

        Args:
            raw_score: Score from a matcher or lexical ranker
            scale: ``"bounded"`` for [0, 1] similarity, ``"lexical"`` for unbounded scores

        Returns:
            Tier and percentage; the percentage is monotonic in ``raw_score``
        """
        if scale == LEXICAL:
            percentage = self.lexical_percentage(raw_score)
            return Classification(self.tier_for_percentage(percentage), percentage, raw_score, LEXICAL)
        if scale != BOUNDED:
            raise ValueError(f"Unknown score scale: {scale}")

        return Classification(self.tier_for_score(raw_score), self.bounded_percentage(raw_score), raw_score, BOUNDED)

    def meets_threshold(self, classification: Classification) -> bool:
        return classification.percentage >= self.threshold
