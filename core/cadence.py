"""
cadence.py
-----------
Billing cadence table.

Loads the ordered cadences list from config.yaml and answers two questions:
which cadence (if any) explains a sequence of day intervals, and when the
next charge lands for a given cadence.

Classification is first-match-wins in table order, not best fit. A sequence
that fits both MONTHLY and QUARTERLY bands is always MONTHLY.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Sequence

import pandas as pd

from config.config_loader import get_cadence_table
from core.models import Cadence


class CadenceTable:
    """
    Ordered lookup of billing cadences.

    Built once at init from config (or an injected table). Thread-safe for reads.
    """

    def __init__(self, table: Sequence[Dict[str, Any]] | None = None):
        if table is None:
            table = get_cadence_table()
        self._cadences: list[Cadence] = [
            Cadence(
                cycle=str(row["cycle"]),
                target_days=int(row["target_days"]),
                tolerance=int(row["tolerance"]),
                months=int(row["months"]),
                monthly_divisor=int(row["monthly_divisor"]),
            )
            for row in table
        ]
        self._by_cycle = {c.cycle: c for c in self._cadences}

    def classify(self, intervals: Sequence[float]) -> Optional[Cadence]:
        """
        Returns the first cadence whose tolerance band contains every
        interval, or None when no single cadence explains them all.
        """
        if len(intervals) == 0:
            return None
        for cadence in self._cadences:
            if all(cadence.accepts(interval) for interval in intervals):
                return cadence
        return None

    def get(self, cycle: str) -> Optional[Cadence]:
        return self._by_cycle.get(cycle)

    @staticmethod
    def advance(date: datetime, cadence: Cadence) -> datetime:
        """
        Projects the next charge by adding whole calendar months.
        Days past the end of the target month clamp to its last day
        (Jan 31 + 1 month = Feb 28, or Feb 29 in a leap year).
        """
        shifted = pd.Timestamp(date) + pd.DateOffset(months=cadence.months)
        return shifted.to_pydatetime()

    @staticmethod
    def monthly_equivalent(amount: float, cadence: Cadence) -> float:
        return amount / cadence.monthly_divisor

    @property
    def cycles(self) -> list[str]:
        return [c.cycle for c in self._cadences]

    def __iter__(self):
        return iter(self._cadences)

    def __len__(self) -> int:
        return len(self._cadences)

    def __repr__(self) -> str:
        return f"CadenceTable(cycles={self.cycles})"
