"""
main.py
--------
Entry point for the Recurring Charge Detection Engine.

Reads transaction, subscription and category exports, runs subscription
discovery, and writes the candidates to the outputs/ folder.

Usage (from the project root):
    python main.py --transactions path/to/transactions.csv

    # With optional arguments:
    python main.py --transactions t.csv --subscriptions s.csv --categories c.csv
    python main.py --transactions t.csv --min-confidence 0.75
"""

import sys
import os
import argparse
import logging
import pandas as pd
from datetime import datetime

# Ensure project root is on path (for runs from any working directory)
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from pipeline import SubscriptionDiscoveryPipeline


# =============================================================================
# LOGGING SETUP
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("main")

ID_COLUMNS = {"id": str, "category_id": str}


# =============================================================================
# ARGUMENT PARSING
# =============================================================================

def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Recurring Charge Detection Engine — Find untracked subscriptions in expense history."
    )
    parser.add_argument(
        "--transactions", type=str, required=True,
        help="Path to transactions CSV (id, description, amount, date, type, category_id)."
    )
    parser.add_argument(
        "--subscriptions", type=str, default=None,
        help="Path to tracked subscriptions CSV (id, name, amount, billing_cycle, next_billing_date, is_active)."
    )
    parser.add_argument(
        "--categories", type=str, default=None,
        help="Path to categories CSV (id, name)."
    )
    parser.add_argument(
        "--min-confidence", type=float, default=0.0,
        help="Drop candidates below this confidence (0–1). Default: keep all."
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Output directory. Defaults to outputs/ in project root."
    )
    return parser.parse_args()


# =============================================================================
# MAIN
# =============================================================================

def main():
    args = parse_args()

    output_dir = args.output_dir or os.path.join(PROJECT_ROOT, "outputs")
    os.makedirs(output_dir, exist_ok=True)

    # --- Load inputs ---
    transactions = _read_csv(args.transactions, required=True)
    subscriptions = _read_csv(args.subscriptions)
    categories = _read_csv(args.categories)
    logger.info(
        f"Loaded {len(transactions):,} transactions, {len(subscriptions):,} subscriptions, "
        f"{len(categories):,} categories."
    )

    # --- Run pipeline ---
    pipeline = SubscriptionDiscoveryPipeline()
    candidates = pipeline.run_detection_only(transactions, subscriptions, categories)
    output = pipeline.serialize_candidates(candidates)

    filtered = output[output["confidence"].astype(float) >= args.min_confidence].copy()
    logger.info(
        f"After filtering (>= {args.min_confidence:.2f}): {len(filtered):,} candidates. "
        f"Filtered out: {len(output) - len(filtered):,}."
    )

    # --- Output ---
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    candidates_path = os.path.join(output_dir, f"candidates_{timestamp}.csv")
    filtered.to_csv(candidates_path, index=False)
    logger.info(f"Candidates saved to: {candidates_path}")

    summary = pipeline.summarize(subscriptions, candidates)
    _print_summary(filtered, summary)


def _read_csv(path: str | None, required: bool = False) -> pd.DataFrame:
    if path is None:
        return pd.DataFrame()
    if not os.path.exists(path):
        logger.error(f"Input file not found: {path}")
        if required:
            sys.exit(1)
        return pd.DataFrame()
    logger.info(f"Loading: {path}")
    return pd.read_csv(path, dtype=ID_COLUMNS)


def _print_summary(df: pd.DataFrame, summary):
    """Prints a clean summary table to the console."""
    print("\n" + "=" * 80)
    print("  SUBSCRIPTION DISCOVERY SUMMARY")
    print("=" * 80)

    print("\n  Tracked subscriptions:")
    print("  " + "-" * 60)
    print(f"    Active:               {summary.active_count:>8,}")
    print(f"    Monthly cost:         {summary.monthly_cost:>11,.2f}")
    print(f"    Yearly cost:          {summary.yearly_cost:>11,.2f}")
    print(f"    Renewing in 30 days:  {len(summary.upcoming_renewals):>8,}")

    if df.empty:
        print("\n  No untracked recurring charges detected.\n")
        print("=" * 80 + "\n")
        return

    print(f"\n  Detected candidates ({len(df):,}, {summary.detected_monthly_cost:,.2f}/month):")
    print("  " + "-" * 60)
    for _, row in df.iterrows():
        print(
            f"    {row['name'][:28]:28s}  {row['amount']:>9,.2f}  {row['billing_cycle']:9s}"
            f"  next {row['next_billing_date']}  ({row['confidence_percent']}%, {row['transaction_count']} txns)"
        )
    print("=" * 80 + "\n")


if __name__ == "__main__":
    main()
