"""
cost_rollup.py
---------------
Cost aggregation over persisted subscriptions.

Folds active subscriptions into monthly and yearly totals using the per-cycle
factors in config.yaml, and flags renewals coming up inside the configured
window. Candidates are not subscriptions; their monthly equivalents are only
added as a separate detected_monthly_cost figure.
"""

import math
from datetime import datetime
from typing import Any, Dict, Iterable, List, Sequence

import pandas as pd

from config.config_loader import get_cost_rollup_config, get_renewals_config
from core.models import CostSummary, DetectedCandidate, Subscription


class CostRollup:
    """
    Usage:
        rollup = CostRollup()
        summary = rollup.summarize(subscriptions, candidates, reference_date=datetime.now())
    """

    def __init__(self, config: Dict[str, Any] | None = None, renewals: Dict[str, Any] | None = None):
        self.config = config if config is not None else get_cost_rollup_config()
        self.renewals = renewals if renewals is not None else get_renewals_config()

    # -------------------------------------------------------------------------
    # PER-SUBSCRIPTION
    # -------------------------------------------------------------------------

    def monthly_amount(self, subscription: Subscription) -> float:
        """MONTHLY and unrecognized cycles count at face value."""
        num, den = self.config["monthly_factors"].get(
            subscription.billing_cycle, self.config["default_monthly_factor"]
        )
        return subscription.amount * num / den

    def yearly_amount(self, subscription: Subscription) -> float:
        """YEARLY and unrecognized cycles count at face value."""
        num, den = self.config["yearly_factors"].get(
            subscription.billing_cycle, self.config["default_yearly_factor"]
        )
        return subscription.amount * num / den

    # -------------------------------------------------------------------------
    # ROLLUPS
    # -------------------------------------------------------------------------

    @staticmethod
    def active(subscriptions: Iterable[Subscription]) -> List[Subscription]:
        return [s for s in subscriptions if s.is_active]

    def monthly_cost(self, subscriptions: Iterable[Subscription]) -> float:
        return sum((self.monthly_amount(s) for s in self.active(subscriptions)), 0.0)

    def yearly_cost(self, subscriptions: Iterable[Subscription]) -> float:
        return sum((self.yearly_amount(s) for s in self.active(subscriptions)), 0.0)

    @staticmethod
    def detected_monthly_cost(candidates: Iterable[DetectedCandidate]) -> float:
        return sum((c.monthly_equivalent for c in candidates), 0.0)

    # -------------------------------------------------------------------------
    # RENEWALS
    # -------------------------------------------------------------------------

    def upcoming_renewals(self, subscriptions: Iterable[Subscription], reference_date: datetime) -> List[Subscription]:
        """Active subscriptions billing on or before reference_date + window."""
        cutoff = pd.Timestamp(reference_date) + pd.Timedelta(days=self.renewals["upcoming_window_days"])
        return [s for s in self.active(subscriptions) if pd.Timestamp(s.next_billing_date) <= cutoff]

    def renewal_status(self, subscription: Subscription, reference_date: datetime) -> str:
        """
        "urgent" within urgent_days, "warning" within warning_days, else "good".
        Days are counted up to the next whole day.
        """
        delta = pd.Timestamp(subscription.next_billing_date) - pd.Timestamp(reference_date)
        days_until = math.ceil(delta / pd.Timedelta(days=1))
        if days_until <= self.renewals["urgent_days"]:
            return "urgent"
        if days_until <= self.renewals["warning_days"]:
            return "warning"
        return "good"

    # -------------------------------------------------------------------------
    # SUMMARY
    # -------------------------------------------------------------------------

    def summarize(
        self,
        subscriptions: Sequence[Subscription],
        candidates: Sequence[DetectedCandidate] = (),
        reference_date: datetime | None = None,
    ) -> CostSummary:
        if reference_date is None:
            reference_date = datetime.now()
        return CostSummary(
            active_count=len(self.active(subscriptions)),
            monthly_cost=self.monthly_cost(subscriptions),
            yearly_cost=self.yearly_cost(subscriptions),
            detected_monthly_cost=self.detected_monthly_cost(candidates),
            upcoming_renewals=self.upcoming_renewals(subscriptions, reference_date),
        )
