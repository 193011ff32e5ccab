import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from errors import ValidationError
from models.category import Category, DEFAULT_COLOR
from models.transaction import Transaction
from models.validation import (
    merge_category_changes,
    merge_transaction_changes,
    parse_amount,
    parse_budget,
    parse_category_id,
    parse_occurred_at,
    resolve_direction,
    validate_category_fields,
    validate_transaction_fields,
)


class TestParseAmount:
    """Tests for parse_amount."""

    def test_float_keeps_decimal_value(self):
        """Test that floats are converted through their string form."""
        assert parse_amount(0.1) == Decimal("0.1")

    def test_string_and_int(self):
        assert parse_amount("12.50") == Decimal("12.50")
        assert parse_amount(3) == Decimal("3")

    @pytest.mark.parametrize("value", [None, True, "NaN", "Infinity", "", [1]])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValidationError):
            parse_amount(value)

    @pytest.mark.parametrize("value", [0, "-0.01"])
    def test_rejects_non_positive(self, value):
        with pytest.raises(ValidationError, match="greater than 0"):
            parse_amount(value)


class TestParseBudget:
    """Tests for parse_budget."""

    def test_missing_means_zero(self):
        assert parse_budget(None) == Decimal("0")

    def test_zero_allowed(self):
        assert parse_budget(0) == Decimal("0")

    def test_negative_rejected(self):
        with pytest.raises(ValidationError, match="cannot be negative"):
            parse_budget("-10")


class TestResolveDirection:
    """Tests for resolve_direction."""

    @pytest.mark.parametrize(
        "type_, direction, expected",
        [
            ("expense", None, ("expense", "debit")),
            ("income", None, ("income", "credit")),
            (None, "debit", ("expense", "debit")),
            (None, "credit", ("income", "credit")),
            ("expense", "debit", ("expense", "debit")),
        ],
    )
    def test_resolves(self, type_, direction, expected):
        assert resolve_direction(type_, direction) == expected

    @pytest.mark.parametrize(
        "type_, direction",
        [(None, None), ("refund", None), (None, "sideways"), ("income", "debit")],
    )
    def test_rejects(self, type_, direction):
        with pytest.raises(ValidationError):
            resolve_direction(type_, direction)


class TestParseOccurredAt:
    """Tests for parse_occurred_at."""

    def test_date_becomes_midnight(self):
        assert parse_occurred_at(date(2025, 5, 4)) == datetime(2025, 5, 4)

    def test_iso_string(self):
        assert parse_occurred_at("2025-05-04T10:30:00") == datetime(2025, 5, 4, 10, 30)

    def test_offset_converted_to_local_naive(self):
        """Test that a UTC offset is folded into naive local time."""
        parsed = parse_occurred_at("2024-05-01T08:00:00+00:00")

        expected = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc).astimezone()
        assert parsed == expected.replace(tzinfo=None)
        assert parsed.tzinfo is None

    def test_aware_datetime_converted(self):
        aware = datetime(2024, 5, 1, 8, 0, tzinfo=timezone(timedelta(hours=-5)))

        assert parse_occurred_at(aware) == aware.astimezone().replace(tzinfo=None)

    def test_bad_string(self):
        with pytest.raises(ValidationError, match="Invalid transaction date"):
            parse_occurred_at("yesterday")


class TestParseCategoryId:
    def test_values(self):
        assert parse_category_id(None) is None
        assert parse_category_id(4) == 4

    @pytest.mark.parametrize("value", ["4", True, 4.0])
    def test_rejects_non_ids(self, value):
        with pytest.raises(ValidationError, match="must be an id"):
            parse_category_id(value)


class TestTransactionRecords:
    """Tests for whole-record transaction validation."""

    def test_normalizes_every_field(self):
        fields = validate_transaction_fields(
            {
                "amount": "9.99",
                "description": "  Book  ",
                "direction": "debit",
                "occurred_at": "2025-01-02",
            }
        )

        assert fields == {
            "amount": Decimal("9.99"),
            "type": "expense",
            "direction": "debit",
            "description": "Book",
            "category_id": None,
            "occurred_at": datetime(2025, 1, 2),
        }

    def test_description_too_long(self):
        with pytest.raises(ValidationError, match="cannot exceed 200"):
            validate_transaction_fields(
                {"amount": 1, "type": "expense", "description": "x" * 201}
            )

    def test_merge_type_change_rederives_direction(self):
        """Test that changing only the type does not clash with the old direction."""
        current = Transaction(
            id=1,
            amount=Decimal("5"),
            type="expense",
            direction="debit",
            description="Tea",
            occurred_at=datetime(2025, 1, 1),
            category_id=3,
        )

        fields = merge_transaction_changes(current, {"type": "income"})

        assert fields["direction"] == "credit"
        assert fields["category_id"] == 3
        assert fields["occurred_at"] == datetime(2025, 1, 1)

    def test_merge_rejects_unknown_fields(self):
        current = Transaction(
            id=1,
            amount=Decimal("5"),
            type="expense",
            direction="debit",
            description="Tea",
            occurred_at=datetime(2025, 1, 1),
        )

        with pytest.raises(ValidationError, match="Unknown transaction fields"):
            merge_transaction_changes(current, {"id": 2})


class TestCategoryRecords:
    """Tests for whole-record category validation."""

    def test_defaults(self):
        fields = validate_category_fields({"name": " Pets "})

        assert fields == {
            "name": "Pets",
            "budget": Decimal("0"),
            "color": DEFAULT_COLOR,
            "description": None,
        }

    @pytest.mark.parametrize("color", ["#abc", "#A1B2C3"])
    def test_accepts_hex_colors(self, color):
        assert validate_category_fields({"name": "X", "color": color})["color"] == color

    @pytest.mark.parametrize("color", ["abc", "#abcd", "#GGGGGG", 42])
    def test_rejects_bad_colors(self, color):
        with pytest.raises(ValidationError, match="Invalid color"):
            validate_category_fields({"name": "X", "color": color})

    def test_merge_keeps_unchanged_fields(self):
        category = Category(
            id=1,
            name="Food",
            budget=Decimal("100"),
            spent=Decimal("40"),
            color="#00ff00",
            description="Groceries",
        )

        fields = merge_category_changes(category, {"budget": 250})

        assert fields == {
            "name": "Food",
            "budget": Decimal("250"),
            "color": "#00ff00",
            "description": "Groceries",
        }

    def test_merge_rejects_spent(self):
        category = Category(id=1, name="Food", budget=Decimal("100"))

        with pytest.raises(ValidationError, match="derived"):
            merge_category_changes(category, {"spent": 0})
