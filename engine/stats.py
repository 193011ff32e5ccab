"""Read-only budget statistics and lookups over the ledger controller's state."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from models.category import Category
from models.stats import CategoryStats, PortfolioStats
from models.transaction import Transaction, TYPE_TO_DIRECTION, local_naive

ZERO = Decimal("0")


class LedgerStats:
    """Derived views over a LedgerController. Never mutates anything.

    Args:
        controller: The ledger controller whose state is read.
    """

    def __init__(self, controller):
        self.controller = controller

    # Budget figures

    def category_stats(self, category_id: Optional[int]) -> CategoryStats:
        """Budget figures for one category; all zeros if it does not exist."""
        category = self.controller.get_category(category_id)
        if category is None:
            return CategoryStats.empty()
        return CategoryStats.for_category(category)

    def portfolio_stats(self) -> PortfolioStats:
        """Budget figures summed across every category."""
        categories = self.controller.categories()

        total_budget = sum((c.budget for c in categories), ZERO)
        total_spent = sum((c.spent for c in categories), ZERO)
        overall_usage = (
            total_spent / total_budget * 100 if total_budget > 0 else ZERO
        )

        return PortfolioStats(
            total_budget=total_budget,
            total_spent=total_spent,
            total_remaining=total_budget - total_spent,
            overall_usage_percentage=overall_usage,
            categories_count=len(categories),
            over_budget_categories=[c for c in categories if c.is_over_budget],
        )

    # Category lookups

    def find_by_id(self, category_id: Optional[int]) -> Optional[Category]:
        return self.controller.get_category(category_id)

    def find_by_name(self, name: str) -> Optional[Category]:
        """Find a category by name, ignoring case and surrounding whitespace."""
        key = name.strip().casefold()
        for category in self.controller.categories():
            if category.name.casefold() == key:
                return category
        return None

    def find_by_color(self, color: str) -> List[Category]:
        return [
            c for c in self.controller.categories() if c.color.lower() == color.lower()
        ]

    def find_over_budget(self) -> List[Category]:
        return [c for c in self.controller.categories() if c.is_over_budget]

    def find_under_budget(self) -> List[Category]:
        """Categories with a budget that still have money left."""
        return [
            c
            for c in self.controller.categories()
            if c.has_budget and c.spent < c.budget
        ]

    def find_with_budget(self) -> List[Category]:
        return [c for c in self.controller.categories() if c.has_budget]

    def find_without_budget(self) -> List[Category]:
        return [c for c in self.controller.categories() if not c.has_budget]

    # Transaction views, newest first

    def transactions_for(self, category_id: Optional[int]) -> List[Transaction]:
        """Transactions labeled with the category, newest first."""
        if category_id is None:
            return []
        return [
            t for t in self.controller.transactions() if t.category_id == category_id
        ]

    def unlabeled_transactions(self) -> List[Transaction]:
        return [t for t in self.controller.transactions() if not t.is_labeled]

    def transactions_between(
        self, start: datetime, end: datetime
    ) -> List[Transaction]:
        """Transactions with start <= occurred_at <= end."""
        start, end = local_naive(start), local_naive(end)
        return [
            t for t in self.controller.transactions() if start <= t.occurred_at <= end
        ]

    def transactions_by_type(self, kind: str) -> List[Transaction]:
        """Transactions matching a type ("income"/"expense") or direction ("credit"/"debit")."""
        direction = TYPE_TO_DIRECTION.get(kind, kind)
        return [t for t in self.controller.transactions() if t.direction == direction]

    def search_transactions(self, term: str) -> List[Transaction]:
        """Case-insensitive search on description or amount."""
        term = term.strip().lower()
        if not term:
            return self.controller.transactions()
        return [
            t
            for t in self.controller.transactions()
            if term in t.description.lower() or term in str(t.amount)
        ]

    def category_for(self, transaction: Transaction) -> Optional[Category]:
        """The category a transaction is labeled with, if any."""
        return self.controller.get_category(transaction.category_id)
