"""
confidence_scorer.py
---------------------
Amount-consistency gate and confidence scoring for detected groups.

Scoring follows a consistent pattern:

    1. Hard gate: If the group's amounts fail the consistency gate, return
       None (no candidate).
    2. Component scores: Interval regularity and amount regularity, each
       scored independently on a 0–1 scale.
    3. Composite: Equal-weight blend, clamped to the configured floor and
       ceiling so a surviving candidate is never shown below the floor or
       presented as near-certain.

Thresholds come from config.yaml — only the scoring structure lives in code.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np

from config.config_loader import get_scoring_config
from core.models import Cadence


@dataclass(frozen=True)
class AmountProfile:
    """Result of the amount-consistency gate."""
    median: float
    mean_absolute_deviation: float
    deviation_ratio: float


class ConfidenceScorer:
    """
    Usage:
        scorer = ConfidenceScorer()
        profile = scorer.profile_amounts([9.99, 9.99, 10.49])
        if profile is not None:
            confidence = scorer.score(intervals, cadence, profile)
    """

    def __init__(self, config: Dict[str, Any] | None = None):
        self.config = config if config is not None else get_scoring_config()
        self.max_deviation_ratio = float(self.config["max_deviation_ratio"])
        self.confidence_floor = float(self.config["confidence_floor"])
        self.confidence_ceiling = float(self.config["confidence_ceiling"])

    # -------------------------------------------------------------------------
    # HARD GATE
    # -------------------------------------------------------------------------

    def profile_amounts(self, amounts: Sequence[float]) -> Optional[AmountProfile]:
        """
        Median and mean absolute deviation of the absolute amounts.

        Returns None when the median is zero or not finite, or when the
        deviation ratio exceeds the configured maximum.
        """
        values = np.abs(np.asarray(amounts, dtype=float))
        if values.size == 0:
            return None

        median = float(np.median(values))
        if median == 0 or not np.isfinite(median):
            return None

        mad = float(np.mean(np.abs(values - median)))
        ratio = mad / median
        if not np.isfinite(ratio) or ratio > self.max_deviation_ratio:
            return None

        return AmountProfile(median=median, mean_absolute_deviation=mad, deviation_ratio=ratio)

    # -------------------------------------------------------------------------
    # COMPONENT SCORES
    # -------------------------------------------------------------------------

    @staticmethod
    def interval_score(intervals: Sequence[float], cadence: Cadence) -> float:
        """1.0 when every interval hits the target exactly, 0.0 at the tolerance edge."""
        deviation = float(np.mean(np.abs(np.asarray(intervals, dtype=float) - cadence.target_days)))
        return max(0.0, 1.0 - deviation / cadence.tolerance)

    def amount_score(self, profile: AmountProfile) -> float:
        """1.0 for identical amounts, 0.0 at the maximum deviation ratio."""
        return max(0.0, 1.0 - profile.deviation_ratio / self.max_deviation_ratio)

    # -------------------------------------------------------------------------
    # COMPOSITE
    # -------------------------------------------------------------------------

    def score(self, intervals: Sequence[float], cadence: Cadence, profile: AmountProfile) -> float:
        raw = (self.interval_score(intervals, cadence) + self.amount_score(profile)) / 2
        return min(self.confidence_ceiling, max(self.confidence_floor, raw))
