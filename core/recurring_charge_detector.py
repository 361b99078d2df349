"""
recurring_charge_detector.py
-----------------------------
Recurring charge detection engine.

Answers one question for a user's transaction snapshot:

    "Which untracked charges look like a subscription?"

Output: a DetectedCandidate per qualifying description group, sorted by
monthly-equivalent cost descending. Nothing is persisted; every call starts
from scratch.

Design decisions:
    - Grouping key is the normalized description. Reference numbers and
      processor noise are stripped so one biller lands in one group.
    - Groups already tracked as a subscription (by normalized name) are
      excluded before any analysis.
    - Cadence is decided by the CadenceTable (first match, every interval
      inside the band). There is no best-fit search.
    - Every rejection is a filter, not an error. An empty list is a normal
      result for sparse or noisy histories.
    - All thresholds and tolerances are read from config.yaml.
"""

import logging
import re
from collections import Counter
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Iterable, List, Mapping

import numpy as np
import pandas as pd

from config.config_loader import get_recurring_detection_config
from core.cadence import CadenceTable
from core.models import DetectedCandidate
from core.normalizer import DescriptionNormalizer, title_case
from scoring.confidence_scorer import ConfidenceScorer

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ["id", "description", "amount", "date", "type"]

# Trailing UTC offset on an ISO timestamp string: Z, +05:30, -0400.
_OFFSET_SUFFIX = re.compile(r"(?:Z|[+-]\d{2}:?\d{2})$", re.IGNORECASE)


class RecurringChargeDetector:
    """
    Detects untracked recurring charges in transaction data.

    Usage:
        detector = RecurringChargeDetector()
        candidates = detector.detect(transactions, subscriptions, categories)
    """

    def __init__(
        self,
        config: Dict[str, Any] | None = None,
        cadence_table: CadenceTable | None = None,
        scorer: ConfidenceScorer | None = None,
    ):
        self.config = config if config is not None else get_recurring_detection_config()
        self.expense_type = self.config["expense_type"]
        self.min_transactions = int(self.config["min_transactions"])
        self.min_key_length = int(self.config["min_key_length"])
        self.min_intervals = int(self.config["min_intervals"])
        self.normalizer = DescriptionNormalizer(self.config["noise_tokens"])
        self.cadence_table = cadence_table if cadence_table is not None else CadenceTable()
        self.scorer = scorer if scorer is not None else ConfidenceScorer()

    # -------------------------------------------------------------------------
    # PUBLIC INTERFACE
    # -------------------------------------------------------------------------

    def detect(
        self,
        transactions: pd.DataFrame | Iterable[Any],
        subscriptions: pd.DataFrame | Iterable[Any] = (),
        categories: pd.DataFrame | Mapping[str, str] | Iterable[Any] = (),
    ) -> List[DetectedCandidate]:
        """
        Run recurring charge detection on a transaction snapshot.

        Args:
            transactions: Transaction records or a DataFrame with columns
                id, description, amount, date, type and optionally category_id.
            subscriptions: Already-tracked subscriptions (records, names, or
                a DataFrame with a name column). Their normalized names are
                excluded from detection.
            categories: Category records, an id -> name mapping, or a
                DataFrame with id and name columns.

        Returns:
            List of DetectedCandidate sorted by monthly_equivalent descending.
        """
        df = self._prepare(transactions)
        if df.empty:
            return []

        groups = self._group(df, self._subscription_names(subscriptions))
        category_names = self._category_names(categories)

        results: List[DetectedCandidate] = []
        for key, group in groups.items():
            candidate = self._build_candidate(key, group, category_names)
            if candidate is not None:
                results.append(candidate)

        # Stable sort: equal costs keep first-seen group order.
        results.sort(key=lambda c: c.monthly_equivalent, reverse=True)
        return results

    def group(
        self, transactions: pd.DataFrame | Iterable[Any], existing_names: Iterable[str] = ()
    ) -> Dict[str, pd.DataFrame]:
        """
        Buckets expense transactions by normalized description.

        Keys shorter than min_key_length, keys matching an existing
        subscription name, and buckets with fewer than min_transactions rows
        are left out. Each bucket is sorted by date ascending.
        """
        return self._group(self._prepare(transactions), existing_names)

    def _group(self, df: pd.DataFrame, existing_names: Iterable[str]) -> Dict[str, pd.DataFrame]:
        if df.empty:
            return {}

        excluded = {self.normalizer.normalize(name) for name in existing_names}

        groups: Dict[str, pd.DataFrame] = {}
        for key, group in df.groupby("group_key", sort=False):
            if len(group) < self.min_transactions:
                logger.debug(f"Group '{key}' skipped: {len(group)} transactions.")
                continue
            if key in excluded:
                logger.debug(f"Group '{key}' skipped: already tracked.")
                continue
            groups[key] = group.sort_values("date", kind="mergesort")
        return groups

    @staticmethod
    def intervals(group: pd.DataFrame) -> list[float]:
        """
        Whole-day gaps between consecutive charges, rounded half up.
        Zero and negative gaps (same-day duplicates) are dropped.
        """
        dates = group["date"].sort_values(kind="mergesort")
        days = (dates.diff().iloc[1:] / pd.Timedelta(days=1)).to_numpy(dtype=float)
        days = np.floor(days + 0.5)
        return [float(d) for d in days if d > 0]

    # -------------------------------------------------------------------------
    # INTERNAL: DATA PREPARATION
    # -------------------------------------------------------------------------

    def _prepare(self, transactions: pd.DataFrame | Iterable[Any]) -> pd.DataFrame:
        """
        Validates input, keeps expenses, parses dates and computes group keys.
        Returns a new frame; the caller's data is never modified.
        """
        df = _to_frame(transactions, REQUIRED_COLUMNS)

        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        df = df.copy()
        if "category_id" not in df.columns:
            df["category_id"] = None

        df = df[df["type"] == self.expense_type].copy()
        if df.empty:
            return df.assign(group_key=pd.Series(dtype=str))

        df["date"] = _parse_dates(df["date"])
        bad_dates = int(df["date"].isna().sum())
        if bad_dates:
            logger.warning(f"Dropping {bad_dates:,} expense transactions with unparseable dates.")
            df = df[df["date"].notna()].copy()

        df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
        df["group_key"] = df["description"].fillna("").astype(str).map(self.normalizer.normalize)
        df = df[df["group_key"].str.len() >= self.min_key_length]

        return df.reset_index(drop=True)

    # -------------------------------------------------------------------------
    # INTERNAL: CANDIDATE CONSTRUCTION
    # -------------------------------------------------------------------------

    def _build_candidate(
        self, key: str, group: pd.DataFrame, category_names: Dict[str, str]
    ) -> DetectedCandidate | None:
        """
        Builds a DetectedCandidate from one date-sorted group.

        Returns None if the group fails the interval count, cadence or
        amount-consistency gate.
        """
        # --- Cadence ---
        intervals = self.intervals(group)
        if len(intervals) < self.min_intervals:
            logger.debug(f"Group '{key}' skipped: {len(intervals)} usable intervals.")
            return None

        cadence = self.cadence_table.classify(intervals)
        if cadence is None:
            logger.debug(f"Group '{key}' skipped: intervals {intervals} match no cadence.")
            return None

        # --- Amount consistency ---
        profile = self.scorer.profile_amounts(group["amount"].to_numpy(dtype=float))
        if profile is None:
            logger.debug(f"Group '{key}' skipped: amounts too variable or zero.")
            return None

        confidence = self.scorer.score(intervals, cadence, profile)

        # --- Projection ---
        last_charge = group["date"].iloc[-1].to_pydatetime()
        next_billing = self.cadence_table.advance(last_charge, cadence)

        # --- Category ---
        category_id = _most_common(group["category_id"])
        category_name = category_names.get(category_id) if category_id is not None else None

        return DetectedCandidate(
            group_key=key,
            name=title_case(key),
            amount=profile.median,
            billing_cycle=cadence.cycle,
            next_billing_date=next_billing,
            last_charge_date=last_charge,
            monthly_equivalent=self.cadence_table.monthly_equivalent(profile.median, cadence),
            transaction_count=len(group),
            confidence=confidence,
            category_id=category_id,
            category_name=category_name,
            transaction_ids=[str(i) for i in group["id"].tolist()],
        )

    # -------------------------------------------------------------------------
    # INTERNAL: COLLABORATOR INPUTS
    # -------------------------------------------------------------------------

    @staticmethod
    def _subscription_names(subscriptions: pd.DataFrame | Iterable[Any]) -> list[str]:
        if isinstance(subscriptions, pd.DataFrame):
            if "name" not in subscriptions.columns:
                return []
            return subscriptions["name"].dropna().astype(str).tolist()
        names = []
        for sub in subscriptions:
            name = sub if isinstance(sub, str) else getattr(sub, "name", None)
            if name:
                names.append(name)
        return names

    @staticmethod
    def _category_names(categories: pd.DataFrame | Mapping[str, str] | Iterable[Any]) -> Dict[str, str]:
        if isinstance(categories, pd.DataFrame):
            if not {"id", "name"}.issubset(categories.columns):
                return {}
            return {str(i): n for i, n in zip(categories["id"], categories["name"])}
        if isinstance(categories, Mapping):
            return {str(k): v for k, v in categories.items()}
        return {str(c.id): c.name for c in categories}


def _to_frame(records: pd.DataFrame | Iterable[Any], columns: list[str]) -> pd.DataFrame:
    """Accepts a DataFrame, dataclass records or plain dicts."""
    if isinstance(records, pd.DataFrame):
        return records
    rows = [asdict(r) if is_dataclass(r) else dict(r) for r in records]
    if not rows:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(rows)


def _most_common(values: pd.Series) -> str | None:
    """Most frequent non-empty value. Ties go to the value seen first."""
    present = [str(v) for v in values if v is not None and not pd.isna(v) and v != ""]
    if not present:
        return None
    return Counter(present).most_common(1)[0][0]


def _parse_dates(values: pd.Series) -> pd.Series:
    """
    Parses a date column row by row (format="mixed"), so date-only and
    timestamped strings can share a column. Unparseable values become NaT.

    When any value carries a UTC offset, everything is placed on the UTC
    timeline; offsets that differ across a DST change still give correct
    day gaps. Columns without offsets stay naive.
    """
    if pd.api.types.is_datetime64_any_dtype(values):
        if getattr(values.dt, "tz", None) is not None:
            return values.dt.tz_convert("UTC")
        return values

    parsed = pd.to_datetime(values, format="mixed", errors="coerce", utc=True)
    if any(_has_offset(v) for v in values):
        return parsed
    return parsed.dt.tz_localize(None)


def _has_offset(value: Any) -> bool:
    if isinstance(value, str):
        return _OFFSET_SUFFIX.search(value.strip()) is not None
    return getattr(value, "tzinfo", None) is not None
