from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

INCOME = "income"
EXPENSE = "expense"
CREDIT = "credit"
DEBIT = "debit"

# Each transaction type pairs with exactly one direction
TYPE_TO_DIRECTION = {INCOME: CREDIT, EXPENSE: DEBIT}
DIRECTION_TO_TYPE = {CREDIT: INCOME, DEBIT: EXPENSE}


def local_naive(moment: datetime) -> datetime:
    """Express a timestamp as naive local time.

    All ledger timestamps are naive local time so they order against each
    other; offset-aware values are converted, naive ones returned as is.
    """
    if moment.tzinfo is None or moment.utcoffset() is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)


@dataclass
class Transaction:
    id: Optional[int]  # assigned by the database on create
    amount: Decimal  # always positive
    type: str  # 'income' or 'expense'
    direction: str  # 'credit' or 'debit'
    description: str
    occurred_at: datetime
    category_id: Optional[int] = None

    @property
    def is_labeled(self) -> bool:
        """True when the transaction references a category."""
        return self.category_id is not None

    @property
    def is_debit(self) -> bool:
        return self.direction == DEBIT
