"""Input validation for transaction and category records.

Every function here either returns normalized field values or raises
ValidationError with a message suitable for showing to the user.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from errors import ValidationError
from models.category import Category, DEFAULT_COLOR
from models.transaction import (
    Transaction,
    TYPE_TO_DIRECTION,
    DIRECTION_TO_TYPE,
    local_naive,
)

TRANSACTION_FIELDS = {
    "amount",
    "type",
    "direction",
    "description",
    "category_id",
    "occurred_at",
}
CATEGORY_FIELDS = {"name", "budget", "color", "description"}

MAX_DESCRIPTION_LENGTH = 200
MAX_CATEGORY_NAME_LENGTH = 50

_COLOR_PATTERN = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")


def _to_decimal(value, label: str) -> Decimal:
    if value is None:
        raise ValidationError(f"{label} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        # floats go through str() so 0.1 stays 0.1
        result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{label} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{label} must be a finite number")
    return result


def parse_amount(value) -> Decimal:
    """Parse a transaction amount, which must be strictly positive."""
    amount = _to_decimal(value, "Transaction amount")
    if amount <= 0:
        raise ValidationError("Transaction amount must be greater than 0")
    return amount


def parse_budget(value) -> Decimal:
    """Parse a category budget; missing means no ceiling (0)."""
    if value is None:
        return Decimal("0")
    budget = _to_decimal(value, "Budget")
    if budget < 0:
        raise ValidationError("Budget cannot be negative")
    return budget


def resolve_direction(
    type_: Optional[str], direction: Optional[str]
) -> Tuple[str, str]:
    """Resolve a (type, direction) pair from either or both values.

    Returns:
        Tuple of (type, direction), e.g. ("expense", "debit").

    Raises:
        ValidationError: If neither is given, either is unknown, or they disagree.
    """
    if type_ is None and direction is None:
        raise ValidationError("Transaction type or direction is required")

    if type_ is not None and type_ not in TYPE_TO_DIRECTION:
        raise ValidationError(
            f"Unknown transaction type '{type_}' (expected income or expense)"
        )
    if direction is not None and direction not in DIRECTION_TO_TYPE:
        raise ValidationError(
            f"Unknown transaction direction '{direction}' (expected credit or debit)"
        )

    if type_ is None:
        return DIRECTION_TO_TYPE[direction], direction
    if direction is None:
        return type_, TYPE_TO_DIRECTION[type_]

    if TYPE_TO_DIRECTION[type_] != direction:
        raise ValidationError(
            f"Transaction type '{type_}' does not match direction '{direction}'"
        )
    return type_, direction


def parse_description(value, *, required: bool = True) -> Optional[str]:
    description = value.strip() if isinstance(value, str) else ""
    if not description:
        if required:
            raise ValidationError("Transaction description is required")
        return None
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
        )
    return description


def parse_occurred_at(value) -> datetime:
    """Parse a transaction timestamp, defaulting to now.

    Returns naive local time; values carrying a UTC offset are converted.
    """
    if value is None:
        return datetime.now()
    if isinstance(value, datetime):
        return local_naive(value)
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        try:
            return local_naive(datetime.fromisoformat(value))
        except ValueError:
            raise ValidationError(f"Invalid transaction date '{value}'")
    raise ValidationError(f"Invalid transaction date {value!r}")


def parse_category_id(value) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"Category reference must be an id, got {value!r}")
    return value


def validate_transaction_fields(data: dict) -> dict:
    """Validate a complete transaction record.

    Args:
        data: Mapping with any of the keys in TRANSACTION_FIELDS.

    Returns:
        Dictionary with every key of TRANSACTION_FIELDS, normalized.
    """
    unknown = set(data) - TRANSACTION_FIELDS
    if unknown:
        raise ValidationError(f"Unknown transaction fields: {sorted(unknown)}")

    type_, direction = resolve_direction(data.get("type"), data.get("direction"))
    return {
        "amount": parse_amount(data.get("amount")),
        "type": type_,
        "direction": direction,
        "description": parse_description(data.get("description")),
        "category_id": parse_category_id(data.get("category_id")),
        "occurred_at": parse_occurred_at(data.get("occurred_at")),
    }


def merge_transaction_changes(transaction: Transaction, changes: dict) -> dict:
    """Apply partial changes on top of an existing transaction and validate.

    A change to either type or direction replaces the pair, so changing only
    the type re-derives the direction rather than conflicting with the old one.
    """
    unknown = set(changes) - TRANSACTION_FIELDS
    if unknown:
        raise ValidationError(f"Unknown transaction fields: {sorted(unknown)}")

    merged = {
        "amount": transaction.amount,
        "type": transaction.type,
        "direction": transaction.direction,
        "description": transaction.description,
        "category_id": transaction.category_id,
        "occurred_at": transaction.occurred_at,
    }
    if "type" in changes or "direction" in changes:
        merged["type"] = changes.get("type")
        merged["direction"] = changes.get("direction")
    merged.update(
        {k: v for k, v in changes.items() if k not in ("type", "direction")}
    )
    return validate_transaction_fields(merged)


def validate_category_fields(data: dict) -> dict:
    """Validate a complete category record (name uniqueness is checked elsewhere)."""
    if "spent" in data:
        raise ValidationError("Spent is derived from transactions and cannot be set")
    unknown = set(data) - CATEGORY_FIELDS
    if unknown:
        raise ValidationError(f"Unknown category fields: {sorted(unknown)}")

    name = data.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValidationError("Category name is required")
    if len(name) > MAX_CATEGORY_NAME_LENGTH:
        raise ValidationError(
            f"Category name cannot exceed {MAX_CATEGORY_NAME_LENGTH} characters"
        )

    color = data.get("color") or DEFAULT_COLOR
    if not isinstance(color, str) or not _COLOR_PATTERN.match(color):
        raise ValidationError(
            f"Invalid color '{color}'. Use hex format like {DEFAULT_COLOR}"
        )

    return {
        "name": name,
        "budget": parse_budget(data.get("budget")),
        "color": color,
        "description": parse_description(data.get("description"), required=False),
    }


def merge_category_changes(category: Category, changes: dict) -> dict:
    """Apply partial changes on top of an existing category and validate."""
    merged = {
        "name": category.name,
        "budget": category.budget,
        "color": category.color,
        "description": category.description,
    }
    if "spent" in changes:
        raise ValidationError("Spent is derived from transactions and cannot be set")
    unknown = set(changes) - CATEGORY_FIELDS
    if unknown:
        raise ValidationError(f"Unknown category fields: {sorted(unknown)}")
    merged.update(changes)
    return validate_category_fields(merged)
