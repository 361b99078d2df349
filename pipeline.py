"""
pipeline.py
------------
Main orchestration layer. Wires together:
    1. RecurringChargeDetector  →  produces DetectedCandidates
    2. CostRollup               →  totals for tracked subscriptions
    3. Output serialization     →  flat candidate table for display / CSV

This is the single entry point for running the engine. Everything else
is internal machinery.

Usage:
    from pipeline import SubscriptionDiscoveryPipeline

    pipeline = SubscriptionDiscoveryPipeline()
    candidates_df = pipeline.run(transactions_df, subscriptions_df, categories_df)
"""

import pandas as pd
import logging
from typing import Any, Iterable, List
from datetime import datetime

from core.models import CostSummary, DetectedCandidate, Subscription
from core.recurring_charge_detector import RecurringChargeDetector
from core.cost_rollup import CostRollup

logger = logging.getLogger(__name__)

OUTPUT_COLUMNS = [
    "group_key", "name", "amount", "billing_cycle", "next_billing_date",
    "last_charge_date", "transaction_count", "category_id", "category_name",
    "confidence", "confidence_percent", "monthly_equivalent", "transaction_ids",
]

_TRUE_STRINGS = {"true", "1", "yes", "y", "t"}


class SubscriptionDiscoveryPipeline:
    """
    End-to-end subscription discovery.

    Orchestrates detection → serialization, plus cost rollups, without
    exposing internal objects to callers that only want tables.
    """

    def __init__(self, detector: RecurringChargeDetector | None = None, rollup: CostRollup | None = None):
        self.detector = detector if detector is not None else RecurringChargeDetector()
        self.rollup = rollup if rollup is not None else CostRollup()

        logger.info(
            f"Pipeline initialized. "
            f"Cadences: {self.detector.cadence_table.cycles}. "
            f"Min transactions: {self.detector.min_transactions}."
        )

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def run(self, transactions: Any, subscriptions: Any = (), categories: Any = ()) -> pd.DataFrame:
        """
        Run detection and return candidates as a DataFrame, one row per
        candidate, highest monthly equivalent first.
        """
        if not isinstance(transactions, pd.DataFrame):
            transactions = list(transactions)
        logger.info(f"Pipeline starting. Input: {len(transactions):,} transactions.")

        candidates = self.run_detection_only(transactions, subscriptions, categories)
        logger.info(f"Detection complete. Candidates: {len(candidates):,}.")

        output_df = self.serialize_candidates(candidates)
        logger.info(f"Pipeline complete. Output rows: {len(output_df):,}.")

        return output_df

    def run_detection_only(
        self, transactions: Any, subscriptions: Any = (), categories: Any = ()
    ) -> List[DetectedCandidate]:
        """Detection without serialization. Returns DetectedCandidate objects."""
        return self.detector.detect(transactions, subscriptions, categories)

    def summarize(
        self,
        subscriptions: Any,
        candidates: Iterable[DetectedCandidate] = (),
        reference_date: datetime | None = None,
    ) -> CostSummary:
        """Cost rollup over active subscriptions plus the detected monthly cost."""
        subs = to_subscriptions(subscriptions)
        summary = self.rollup.summarize(subs, list(candidates), reference_date)
        logger.info(
            f"Cost rollup: {summary.active_count:,} active, "
            f"{summary.monthly_cost:,.2f}/month, {summary.yearly_cost:,.2f}/year, "
            f"detected {summary.detected_monthly_cost:,.2f}/month."
        )
        return summary

    # -------------------------------------------------------------------------
    # OUTPUT SERIALIZATION
    # -------------------------------------------------------------------------

    def serialize_candidates(self, candidates: List[DetectedCandidate]) -> pd.DataFrame:
        """Flattens DetectedCandidate objects, keeping the detector's order."""
        if not candidates:
            return pd.DataFrame(columns=OUTPUT_COLUMNS)

        rows = []
        for c in candidates:
            rows.append({
                "group_key": c.group_key,
                "name": c.name,
                "amount": round(c.amount, 2),
                "billing_cycle": c.billing_cycle,
                "next_billing_date": c.next_billing_date.strftime("%Y-%m-%d"),
                "last_charge_date": c.last_charge_date.strftime("%Y-%m-%d"),
                "transaction_count": c.transaction_count,
                "category_id": c.category_id,
                "category_name": c.category_name,
                "confidence": round(c.confidence, 4),
                "confidence_percent": c.confidence_percent,
                "monthly_equivalent": round(c.monthly_equivalent, 2),
                "transaction_ids": "|".join(c.transaction_ids),
            })

        return pd.DataFrame(rows, columns=OUTPUT_COLUMNS)


def to_subscriptions(subscriptions: Any) -> List[Subscription]:
    """
    Accepts Subscription records or a DataFrame with matching columns.

    Rows without a usable amount or next billing date cannot be costed and
    are skipped. A blank is_active takes the default (active).
    """
    if not isinstance(subscriptions, pd.DataFrame):
        return list(subscriptions)

    subs = []
    skipped = 0
    for row in subscriptions.to_dict("records"):
        amount = pd.to_numeric(row.get("amount"), errors="coerce")
        next_billing = pd.to_datetime(row.get("next_billing_date"), errors="coerce")
        if pd.isna(amount) or pd.isna(next_billing):
            skipped += 1
            continue

        is_active = row.get("is_active")
        if is_active is None or (not isinstance(is_active, str) and pd.isna(is_active)):
            is_active = True
        elif isinstance(is_active, str):
            is_active = is_active.strip().lower() in _TRUE_STRINGS if is_active.strip() else True

        cycle = row.get("billing_cycle", "MONTHLY")
        subs.append(Subscription(
            id=str(row.get("id", "")),
            name=str(row.get("name", "")),
            amount=float(amount),
            billing_cycle=str(cycle).upper() if pd.notna(cycle) else "MONTHLY",
            next_billing_date=next_billing.to_pydatetime(),
            is_active=bool(is_active),
            category_id=row.get("category_id") if pd.notna(row.get("category_id")) else None,
        ))

    if skipped:
        logger.warning(f"Skipped {skipped:,} subscriptions without an amount or next billing date.")
    return subs
