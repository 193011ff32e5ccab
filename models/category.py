"""Category model for budget tracking."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

DEFAULT_COLOR = "#3B82F6"


@dataclass
class Category:
    """Represents a user-defined budget category.

    Attributes:
        id: Unique identifier (auto-generated).
        name: Category name (unique, case-insensitive).
        budget: Budget ceiling; 0 means no ceiling is configured.
        spent: Sum of debit transactions labeled with this category. Derived
            by the aggregator, never set by callers.
        color: Display color in hex notation.
        description: Optional description of what belongs in this category.
    """

    id: Optional[int]
    name: str
    budget: Decimal
    spent: Decimal = Decimal("0")
    color: str = DEFAULT_COLOR
    description: Optional[str] = None

    @property
    def has_budget(self) -> bool:
        return self.budget > 0

    @property
    def remaining(self) -> Decimal:
        return self.budget - self.spent

    @property
    def usage_percentage(self) -> Decimal:
        if self.budget <= 0:
            return Decimal("0")
        return self.spent / self.budget * 100

    @property
    def is_over_budget(self) -> bool:
        return self.budget > 0 and self.spent > self.budget
