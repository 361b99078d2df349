"""
models.py
----------
Core domain models. These are the typed contracts between engine layers.

- Transaction, Subscription, Category: Read-only snapshots supplied by the
  persistence layer. The engine never mutates them.

- Cadence: One row of the billing cadence table (target interval + tolerance).

- DetectedCandidate: Output of the detection layer. Ephemeral, rebuilt on
  every call, never persisted. Accepting one means building a new
  Subscription from to_subscription_draft().

- CostSummary: Monthly / yearly rollup over active subscriptions.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


DETECTED_NOTES = "Detected from recurring transactions"


@dataclass
class Transaction:
    """A single bank transaction as stored upstream."""

    id: str
    description: str
    amount: float                    # Signed. Expenses are usually negative.
    date: datetime
    type: str                        # "INCOME" | "EXPENSE" | "TRANSFER"
    category_id: Optional[str] = None


@dataclass
class Subscription:
    """A subscription the user already tracks."""

    id: str
    name: str
    amount: float
    billing_cycle: str               # "MONTHLY" | "QUARTERLY" | "YEARLY" | "WEEKLY" | "CUSTOM"
    next_billing_date: datetime
    is_active: bool = True
    category_id: Optional[str] = None


@dataclass
class Category:
    id: str
    name: str


@dataclass(frozen=True)
class Cadence:
    """A billing cadence and the interval band that qualifies for it."""

    cycle: str                       # "MONTHLY" | "QUARTERLY" | "YEARLY"
    target_days: int
    tolerance: int
    months: int                      # Calendar months added to project the next charge
    monthly_divisor: int             # amount / monthly_divisor = monthly equivalent

    def accepts(self, interval: float) -> bool:
        return abs(interval - self.target_days) <= self.tolerance


@dataclass
class DetectedCandidate:
    """
    An untracked recurring charge discovered in the transaction history.

    Produced by RecurringChargeDetector for each description group that
    passes the support, cadence and amount-consistency gates. Confidence is
    always the output of ConfidenceScorer, never set by hand.
    """

    # Identity
    group_key: str                   # Normalized description
    name: str                        # Title-cased group_key

    # Billing
    amount: float                    # Median absolute amount
    billing_cycle: str
    next_billing_date: datetime
    last_charge_date: datetime
    monthly_equivalent: float

    # Support
    transaction_count: int
    confidence: float                # 0.55 – 0.97

    # Category
    category_id: Optional[str] = None
    category_name: Optional[str] = None

    # Evidence
    transaction_ids: list[str] = field(default_factory=list)

    @property
    def confidence_percent(self) -> int:
        """Confidence as the rounded percentage shown next to the candidate."""
        return int(round(self.confidence * 100))

    def to_subscription_draft(self) -> dict:
        """
        Payload for persisting this candidate as a new Subscription.
        The caller assigns the id and writes it to the store.
        """
        return {
            "name": self.name,
            "amount": self.amount,
            "billing_cycle": self.billing_cycle,
            "next_billing_date": self.next_billing_date,
            "category_id": self.category_id,
            "notes": DETECTED_NOTES,
        }


@dataclass
class CostSummary:
    """Cost rollup for the subscriptions view."""

    active_count: int
    monthly_cost: float
    yearly_cost: float
    detected_monthly_cost: float = 0.0
    upcoming_renewals: list[Subscription] = field(default_factory=list)
