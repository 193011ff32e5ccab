"""Transaction service for database operations."""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from models.transaction import Transaction, local_naive

# SQL Query Constants
_TRANSACTION_SELECT_FIELDS = """id, amount, transaction_type, direction, description,
       category_id, occurred_at"""

_TRANSACTION_INSERT_FIELDS = """amount, transaction_type, direction, description,
    category_id, occurred_at"""

# Automatically generate placeholders from field count
_TRANSACTION_INSERT_PLACEHOLDERS = (
    f"({', '.join(['?'] * len(_TRANSACTION_INSERT_FIELDS.split(',')))})"
)

# Transaction attribute -> column name
_UPDATABLE_FIELDS = {
    "amount": "amount",
    "type": "transaction_type",
    "direction": "direction",
    "description": "description",
    "category_id": "category_id",
    "occurred_at": "occurred_at",
}


def _insert_values(transaction: Transaction) -> tuple:
    return (
        float(transaction.amount),
        transaction.type,
        transaction.direction,
        transaction.description,
        transaction.category_id,
        transaction.occurred_at.isoformat(),
    )


def _column_value(transaction: Transaction, field: str):
    value = getattr(transaction, field)
    if field == "amount":
        return float(value)
    if field == "occurred_at":
        return value.isoformat()
    return value


class TransactionService:
    """Service for managing transactions."""

    def __init__(self, db_manager):
        """Initialize the transaction service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def create(self, transaction: Transaction) -> Transaction:
        """Create a single transaction in the database.

        Args:
            transaction: Transaction object to insert. Its id is ignored.

        Returns:
            A copy of the transaction with the database-assigned id.

        Raises:
            Exception: If transaction creation fails (e.g., invalid category).
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                INSERT INTO transactions ({_TRANSACTION_INSERT_FIELDS})
                VALUES {_TRANSACTION_INSERT_PLACEHOLDERS}
                """,
                _insert_values(transaction),
            )
            conn.commit()

        return replace(transaction, id=cursor.lastrowid)

    def bulk_create(self, transactions: List[Transaction]) -> List[Transaction]:
        """Create multiple transactions in the database in a single transaction.

        Args:
            transactions: List of Transaction objects to insert.

        Returns:
            Copies of the transactions with their database-assigned ids, in order.

        Raises:
            Exception: If bulk insert fails. All inserts are rolled back on error.
        """
        if not transactions:
            return []

        created = []
        with self.db_manager.connect() as conn:
            try:
                for t in transactions:
                    cursor = conn.execute(
                        f"""
                        INSERT INTO transactions ({_TRANSACTION_INSERT_FIELDS})
                        VALUES {_TRANSACTION_INSERT_PLACEHOLDERS}
                        """,
                        _insert_values(t),
                    )
                    created.append(replace(t, id=cursor.lastrowid))
                conn.commit()
            except Exception:
                conn.rollback()
                raise

        return created

    def batch_update(
        self, transactions: List[Transaction], field_names: List[str]
    ) -> int:
        """Update specified fields for multiple transactions.

        Args:
            transactions: List of Transaction objects to update.
            field_names: List of field names to update. Supported fields:
                        'amount', 'type', 'direction', 'description',
                        'category_id', 'occurred_at'

        Returns:
            Number of transactions successfully updated.

        Raises:
            ValueError: If unsupported field names are provided.
            Exception: If batch update fails. All updates are rolled back on error.
        """
        if not transactions:
            return 0

        if not field_names:
            raise ValueError("field_names cannot be empty")

        invalid_fields = set(field_names) - set(_UPDATABLE_FIELDS)
        if invalid_fields:
            raise ValueError(f"Unsupported field names: {invalid_fields}")

        set_clause = ", ".join(
            [f"{_UPDATABLE_FIELDS[field]} = ?" for field in field_names]
        )

        # Field values followed by transaction ID for the WHERE clause
        data = [
            tuple(_column_value(t, field) for field in field_names) + (t.id,)
            for t in transactions
        ]

        with self.db_manager.connect() as conn:
            try:
                cursor = conn.executemany(
                    f"""
                    UPDATE transactions
                    SET {set_clause}
                    WHERE id = ?
                    """,
                    data,
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise

            return cursor.rowcount

    def update(self, transaction: Transaction, field_names: List[str]) -> bool:
        """Update specified fields for a single transaction.

        Args:
            transaction: Transaction object to update.
            field_names: List of field names to update (see batch_update).

        Returns:
            True if update was successful, False otherwise.
        """
        count = self.batch_update([transaction], field_names)
        return count > 0

    def delete(self, transaction_id: int) -> bool:
        """Delete a transaction by ID.

        Args:
            transaction_id: The transaction ID to delete.

        Returns:
            True if the transaction was deleted, False if not found.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "DELETE FROM transactions WHERE id = ?", (transaction_id,)
            )
            conn.commit()
            return cursor.rowcount > 0

    def find(self, transaction_id: int) -> Optional[Transaction]:
        """Get a single transaction by ID.

        Args:
            transaction_id: The transaction ID.

        Returns:
            Transaction object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"""
                SELECT {_TRANSACTION_SELECT_FIELDS}
                FROM transactions
                WHERE id = ?
                """,
                (transaction_id,),
            )
            row = cursor.fetchone()

            if row:
                return self._row_to_transaction(row)
            return None

    def find_all(
        self,
        *,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        category_ids: Optional[List[int]] = None,
        labeled: Optional[bool] = None,
    ) -> List[Transaction]:
        """Get transactions, optionally filtered.

        Args:
            start_date: Only transactions on or after this moment.
            end_date: Only transactions on or before this moment.
            category_ids: Optional list of category IDs to filter by.
            labeled: True for labeled only, False for unlabeled only.

        Returns:
            List of Transaction objects ordered by occurred_at (newest first).
        """
        query = f"""
            SELECT {_TRANSACTION_SELECT_FIELDS}
            FROM transactions
            WHERE 1 = 1
        """
        params = []

        if start_date is not None:
            query += " AND occurred_at >= ?"
            params.append(local_naive(start_date).isoformat())

        if end_date is not None:
            query += " AND occurred_at <= ?"
            params.append(local_naive(end_date).isoformat())

        if category_ids is not None and len(category_ids) > 0:
            placeholders = ", ".join(["?"] * len(category_ids))
            query += f" AND category_id IN ({placeholders})"
            params.extend(category_ids)

        if labeled is True:
            query += " AND category_id IS NOT NULL"
        elif labeled is False:
            query += " AND category_id IS NULL"

        query += " ORDER BY occurred_at DESC, id"

        with self.db_manager.connect() as conn:
            cursor = conn.execute(query, params)
            return [self._row_to_transaction(row) for row in cursor.fetchall()]

    def _row_to_transaction(self, row: tuple) -> Transaction:
        """Convert a database row to a Transaction object."""
        return Transaction(
            id=row[0],
            amount=Decimal(str(row[1])),
            type=row[2],
            direction=row[3],
            description=row[4],
            category_id=row[5],
            occurred_at=local_naive(datetime.fromisoformat(row[6])),
        )
