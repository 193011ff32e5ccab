"""Spent-amount aggregation over categories and transactions.

These are pure functions. ``recompute_all`` is the baseline every
incremental update made through ``delta`` must agree with.
"""

from dataclasses import replace
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from models.category import Category
from models.transaction import Transaction

ZERO = Decimal("0")


def spent_by_category(transactions: Iterable[Transaction]) -> Dict[int, Decimal]:
    """Sum labeled debit amounts per category id in a single pass.

    Income and unlabeled transactions contribute nothing.
    """
    totals: Dict[int, Decimal] = {}
    for transaction in transactions:
        if transaction.category_id is None or not transaction.is_debit:
            continue
        totals[transaction.category_id] = (
            totals.get(transaction.category_id, ZERO) + transaction.amount
        )
    return totals


def recompute_all(
    categories: Iterable[Category], transactions: Iterable[Transaction]
) -> List[Category]:
    """Return copies of the categories with spent recomputed from the ledger.

    Runs in O(len(transactions) + len(categories)).
    """
    totals = spent_by_category(transactions)
    return [replace(c, spent=totals.get(c.id, ZERO)) for c in categories]


def delta(category: Category, amount: Decimal, sign: int) -> Decimal:
    """Return the category's spent after adding (+1) or removing (-1) an amount.

    The result is clamped at zero.
    """
    if sign not in (1, -1):
        raise ValueError(f"sign must be 1 or -1, got {sign}")
    return max(ZERO, category.spent + sign * amount)


def find_drift(
    categories: Iterable[Category], transactions: Iterable[Transaction]
) -> Dict[int, Tuple[Decimal, Decimal]]:
    """Find categories whose held spent differs from the recomputed value.

    Returns:
        Mapping of category id to (held spent, expected spent).
    """
    totals = spent_by_category(transactions)
    drift = {}
    for category in categories:
        expected = totals.get(category.id, ZERO)
        if category.spent != expected:
            drift[category.id] = (category.spent, expected)
    return drift
