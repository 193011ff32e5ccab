"""Read-only statistics views over categories."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List

from models.category import Category


@dataclass
class CategoryStats:
    """Budget figures for a single category."""

    spent: Decimal
    budget: Decimal
    remaining: Decimal
    usage_percentage: Decimal
    is_over_budget: bool

    @classmethod
    def empty(cls) -> "CategoryStats":
        """The result reported for a missing category."""
        zero = Decimal("0")
        return cls(
            spent=zero,
            budget=zero,
            remaining=zero,
            usage_percentage=zero,
            is_over_budget=False,
        )

    @classmethod
    def for_category(cls, category: Category) -> "CategoryStats":
        return cls(
            spent=category.spent,
            budget=category.budget,
            remaining=category.remaining,
            usage_percentage=category.usage_percentage,
            is_over_budget=category.is_over_budget,
        )


@dataclass
class PortfolioStats:
    """Budget figures across every category."""

    total_budget: Decimal
    total_spent: Decimal
    total_remaining: Decimal
    overall_usage_percentage: Decimal
    categories_count: int
    over_budget_categories: List[Category] = field(default_factory=list)

    @property
    def over_budget_count(self) -> int:
        return len(self.over_budget_categories)
