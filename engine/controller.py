"""Ledger controller: applies mutations and keeps category spent amounts correct.

The controller holds the working copy of categories and transactions and is
the only code that changes a category's spent amount. Single-transaction
mutations adjust spent incrementally; ``reconcile`` recomputes everything
from the ledger.

Every mutation follows the same sequence:

1. Validate input and look up referenced records (ValidationError,
   NotFoundError). Nothing has been touched yet.
2. Reserve every category and transaction the mutation touches. A record
   already reserved by another in-flight mutation fails fast with
   ConflictError.
3. Write through to the database. Failures surface as TransportError.
4. Apply the whole in-memory change under the state lock, so readers see
   either the state before the mutation or after it.
5. Release the reservations and notify subscribers.

``load`` reserves the whole ledger: it fails with ConflictError while any
mutation is in flight, and mutations fail the same way while it runs.
"""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set, Tuple

from engine import events
from engine.aggregator import delta, find_drift, recompute_all
from engine.events import ALL_EVENTS, EventBus
from errors import ConflictError, NotFoundError, TransportError, ValidationError
from logger import get_logger
from models.category import Category
from models.transaction import Transaction
from models.validation import (
    merge_category_changes,
    merge_transaction_changes,
    parse_category_id,
    validate_category_fields,
    validate_transaction_fields,
)

logger = get_logger()


class LedgerController:
    """Owns the in-memory ledger and applies every mutation to it.

    Args:
        services: Services container used as the persistence layer.
        event_bus: Optional bus for change notifications; a private one is
            created when omitted.
    """

    def __init__(self, services, event_bus: Optional[EventBus] = None):
        self.services = services
        self.events = event_bus or EventBus()

        self._state_lock = threading.RLock()
        self._categories: Dict[int, Category] = {}
        self._transactions: Dict[int, Transaction] = {}

        # Records held by in-flight mutations
        self._busy_categories: Set[int] = set()
        self._busy_transactions: Set[int] = set()
        self._busy_names: Set[str] = set()
        # Mutations between reservation and release, including ones that hold
        # no record (e.g. adding an unlabeled transaction)
        self._in_flight = 0
        # Set while load() replaces the working copy
        self._reloading = False

    # ------------------------------------------------------------------
    # Loading and reconciliation
    # ------------------------------------------------------------------

    def load(self) -> List[Category]:
        """Replace the working copy with the database contents and reconcile.

        Holds the whole ledger while reading: no mutation may be in flight
        when it starts, and none may start until it is done.

        Returns:
            The reconciled categories, ordered by name.

        Raises:
            ConflictError: If a mutation or another load is in flight.
            TransportError: If the database read fails.
        """
        with self._reserve_all():
            categories = self._persist(
                "load categories", self.services.categories.find_all
            )
            transactions = self._persist(
                "load transactions", self.services.transactions.find_all
            )

            # Stored categories carry no spent; totals are rebuilt in the same
            # step as the swap so readers never see them unset
            with self._state_lock:
                self._categories = {
                    c.id: c for c in recompute_all(categories, transactions)
                }
                self._transactions = {t.id: t for t in transactions}
                loaded = self._sorted_categories()

        logger.info(
            f"Loaded {len(categories)} categories and {len(transactions)} transactions"
        )
        self.events.publish(
            events.LEDGER_RECONCILED, {"categories": loaded, "drift": {}}
        )
        return loaded

    def reconcile(self) -> List[Category]:
        """Recompute every category's spent from the ledger.

        Safe to call at any time; calling it twice gives the same result as
        calling it once.

        Returns:
            The reconciled categories, ordered by name.
        """
        with self._state_lock:
            drift = self._reconcile_locked()
            categories = self._sorted_categories()

        self.events.publish(
            events.LEDGER_RECONCILED,
            {"categories": categories, "drift": drift},
        )
        return categories

    def _reconcile_locked(self) -> Dict[int, Tuple[Decimal, Decimal]]:
        drift = find_drift(self._categories.values(), self._transactions.values())
        for category_id, (held, expected) in drift.items():
            logger.warning(
                f"Category {category_id} spent drifted: held {held}, expected {expected}"
            )

        recomputed = recompute_all(
            self._categories.values(), self._transactions.values()
        )
        self._categories = {c.id: c for c in recomputed}
        logger.debug(f"Reconciled {len(recomputed)} categories")
        return drift

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def add_transaction(self, data: dict) -> Transaction:
        """Validate, persist and add a transaction.

        Args:
            data: Transaction fields: amount, description, type and/or
                direction, and optionally category_id and occurred_at.

        Returns:
            The saved transaction with its id.

        Raises:
            ValidationError: If the data is invalid.
            NotFoundError: If category_id references an unknown category.
            ConflictError: If the category is held by another mutation.
            TransportError: If the database write fails.
        """
        fields = validate_transaction_fields(data)
        category_id = fields["category_id"]

        with self._reserve(category_ids=[category_id]):
            with self._state_lock:
                self._require_category(category_id)

            saved = self._persist(
                "create transaction",
                self.services.transactions.create,
                Transaction(id=None, **fields),
            )

            with self._state_lock:
                self._transactions[saved.id] = saved
                self._apply_contribution(saved, 1)

        logger.info(
            f"Added {saved.type} transaction {saved.id} of {saved.amount}"
            + (f" to category {category_id}" if category_id is not None else "")
        )
        self.events.publish(events.TRANSACTION_ADDED, {"transaction": replace(saved)})
        return replace(saved)

    def update_transaction(self, transaction_id: int, changes: dict) -> Transaction:
        """Change any combination of a transaction's fields.

        The old contribution to spent is reversed and the new one applied, so
        amount, direction and category may all change in one call.

        Raises:
            NotFoundError: If the transaction or the new category is unknown.
            ValidationError: If the resulting transaction is invalid.
            ConflictError: If a touched record is held by another mutation.
            TransportError: If the database write fails.
        """
        with self._state_lock:
            current = self._require_transaction(transaction_id)

        fields = merge_transaction_changes(current, changes)
        updated = Transaction(id=transaction_id, **fields)

        with self._reserve(
            category_ids=[current.category_id, updated.category_id],
            transaction_ids=[transaction_id],
        ):
            with self._state_lock:
                self._require_unchanged(current)
                self._require_category(updated.category_id)

            changed_fields = [
                name for name in fields if getattr(current, name) != fields[name]
            ]
            if changed_fields:
                found = self._persist(
                    "update transaction",
                    self.services.transactions.update,
                    updated,
                    changed_fields,
                )
                if not found:
                    raise NotFoundError(
                        f"Transaction with ID {transaction_id} not found in database"
                    )

            with self._state_lock:
                self._apply_contribution(current, -1)
                self._apply_contribution(updated, 1)
                self._transactions[transaction_id] = updated

        logger.info(f"Updated transaction {transaction_id}: {changed_fields or 'no changes'}")
        self.events.publish(
            events.TRANSACTION_UPDATED,
            {"transaction": replace(updated), "previous": current},
        )
        return replace(updated)

    def delete_transaction(self, transaction_id: int) -> Transaction:
        """Delete a transaction and remove its contribution to spent.

        Returns:
            The deleted transaction.
        """
        with self._state_lock:
            current = self._require_transaction(transaction_id)

        with self._reserve(
            category_ids=[current.category_id], transaction_ids=[transaction_id]
        ):
            with self._state_lock:
                self._require_unchanged(current)

            found = self._persist(
                "delete transaction",
                self.services.transactions.delete,
                transaction_id,
            )
            if not found:
                logger.warning(
                    f"Transaction {transaction_id} was already missing from the database"
                )

            with self._state_lock:
                self._apply_contribution(current, -1)
                del self._transactions[transaction_id]

        logger.info(f"Deleted transaction {transaction_id}")
        self.events.publish(events.TRANSACTION_DELETED, {"transaction": current})
        return current

    def bulk_recategorize(self, updates: List[dict]) -> List[Transaction]:
        """Move several transactions to new categories in one step.

        Args:
            updates: Dicts with "transaction_id" and "category_id" (None to
                unlabel).

        Returns:
            The updated transactions, in the order given.

        Either every update is reflected in the category totals or none is.
        """
        targets = self._parse_recategorize_updates(updates)

        with self._state_lock:
            currents = [self._require_transaction(tid) for tid, _ in targets]
            for _, category_id in targets:
                self._require_category(category_id)

        touched_categories = [t.category_id for t in currents]
        touched_categories += [category_id for _, category_id in targets]

        with self._reserve(
            category_ids=touched_categories,
            transaction_ids=[tid for tid, _ in targets],
        ):
            with self._state_lock:
                for current in currents:
                    self._require_unchanged(current)
                for _, category_id in targets:
                    self._require_category(category_id)

            updated = [
                replace(current, category_id=category_id)
                for current, (_, category_id) in zip(currents, targets)
            ]
            to_write = [
                new
                for old, new in zip(currents, updated)
                if old.category_id != new.category_id
            ]
            if to_write:
                self._persist(
                    "recategorize transactions",
                    self.services.transactions.batch_update,
                    to_write,
                    ["category_id"],
                )

            with self._state_lock:
                for old, new in zip(currents, updated):
                    self._apply_contribution(old, -1)
                    self._apply_contribution(new, 1)
                    self._transactions[new.id] = new

        logger.info(
            f"Recategorized {len(to_write)} of {len(updated)} transaction(s)"
        )
        result = [replace(t) for t in updated]
        self.events.publish(
            events.TRANSACTIONS_RECATEGORIZED, {"transactions": result}
        )
        return result

    def import_transactions(self, records: List[dict]) -> List[Transaction]:
        """Persist a batch of transactions and reconcile all totals.

        Every record is validated before anything is written; the batch is
        written in a single database transaction.

        Returns:
            The saved transactions with their ids.
        """
        all_fields = []
        for index, record in enumerate(records):
            try:
                all_fields.append(validate_transaction_fields(record))
            except ValidationError as e:
                raise ValidationError(f"Record {index}: {e}") from e

        if not all_fields:
            return []

        category_ids = {f["category_id"] for f in all_fields}
        with self._reserve(category_ids=category_ids):
            with self._state_lock:
                for category_id in category_ids:
                    self._require_category(category_id)

            saved = self._persist(
                "import transactions",
                self.services.transactions.bulk_create,
                [Transaction(id=None, **fields) for fields in all_fields],
            )

            with self._state_lock:
                for transaction in saved:
                    self._transactions[transaction.id] = transaction
                drift = self._reconcile_locked()

        logger.info(f"Imported {len(saved)} transaction(s)")
        result = [replace(t) for t in saved]
        self.events.publish(
            events.TRANSACTIONS_IMPORTED, {"transactions": result, "drift": drift}
        )
        return result

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def add_category(self, data: dict) -> Category:
        """Validate, persist and add a category with spent at 0.

        Raises:
            ValidationError: If the data is invalid or the name is taken
                (names compare case-insensitively).
        """
        fields = validate_category_fields(data)

        with self._reserve(names=[fields["name"]]):
            with self._state_lock:
                self._require_unique_name(fields["name"])

            saved = self._persist(
                "create category", self.services.categories.create, **fields
            )
            saved = replace(saved, spent=Decimal("0"))

            with self._state_lock:
                self._categories[saved.id] = saved

        logger.info(f"Added category {saved.id} '{saved.name}' (budget {saved.budget})")
        self.events.publish(events.CATEGORY_ADDED, {"category": replace(saved)})
        return replace(saved)

    def update_category(self, category_id: int, changes: dict) -> Category:
        """Change a category's name, budget, color or description.

        Spent is not recomputed; none of these fields affect it.
        """
        with self._state_lock:
            current = self._require_category(category_id)

        fields = merge_category_changes(current, changes)
        renamed = fields["name"].casefold() != current.name.casefold()

        with self._reserve(
            category_ids=[category_id], names=[fields["name"]] if renamed else []
        ):
            with self._state_lock:
                self._require_category(category_id)
                self._require_unique_name(fields["name"], exclude_id=category_id)

            try:
                self._persist(
                    "update category",
                    self.services.categories.update,
                    category_id,
                    **fields,
                )
            except LookupError as e:
                raise NotFoundError(str(e)) from e

            with self._state_lock:
                updated = replace(self._categories[category_id], **fields)
                self._categories[category_id] = updated

        logger.info(f"Updated category {category_id}")
        self.events.publish(
            events.CATEGORY_UPDATED,
            {"category": replace(updated), "previous": current},
        )
        return replace(updated)

    def delete_category(self, category_id: int) -> Category:
        """Delete a category; its transactions become unlabeled.

        Returns:
            The deleted category as it was just before deletion.
        """
        with self._state_lock:
            self._require_category(category_id)

        with self._reserve(category_ids=[category_id]):
            with self._state_lock:
                current = self._require_category(category_id)

            found = self._persist(
                "delete category", self.services.categories.delete, category_id
            )
            if not found:
                logger.warning(
                    f"Category {category_id} was already missing from the database"
                )

            with self._state_lock:
                unlabeled = []
                for transaction in list(self._transactions.values()):
                    if transaction.category_id == category_id:
                        self._transactions[transaction.id] = replace(
                            transaction, category_id=None
                        )
                        unlabeled.append(transaction.id)
                del self._categories[category_id]

        logger.info(
            f"Deleted category {category_id} '{current.name}', "
            f"unlabeled {len(unlabeled)} transaction(s)"
        )
        self.events.publish(
            events.CATEGORY_DELETED,
            {"category": current, "unlabeled_transaction_ids": unlabeled},
        )
        return current

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def categories(self) -> List[Category]:
        """All categories ordered by name."""
        with self._state_lock:
            return self._sorted_categories()

    def transactions(self) -> List[Transaction]:
        """All transactions, newest first."""
        with self._state_lock:
            return self._sorted_transactions()

    def snapshot(self) -> Tuple[List[Category], List[Transaction]]:
        """Categories and transactions taken at the same instant."""
        with self._state_lock:
            return self._sorted_categories(), self._sorted_transactions()

    def get_category(self, category_id: Optional[int]) -> Optional[Category]:
        with self._state_lock:
            category = self._categories.get(category_id)
            return replace(category) if category else None

    def get_transaction(self, transaction_id: int) -> Optional[Transaction]:
        with self._state_lock:
            transaction = self._transactions.get(transaction_id)
            return replace(transaction) if transaction else None

    def subscribe(self, handler, event_name: str = ALL_EVENTS) -> None:
        """Register a handler called with an Event after each applied change."""
        self.events.subscribe(event_name, handler)

    def unsubscribe(self, handler, event_name: str = ALL_EVENTS) -> None:
        self.events.unsubscribe(event_name, handler)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sorted_categories(self) -> List[Category]:
        return [
            replace(c)
            for c in sorted(
                self._categories.values(), key=lambda c: (c.name.casefold(), c.id)
            )
        ]

    def _sorted_transactions(self) -> List[Transaction]:
        ordered = sorted(self._transactions.values(), key=lambda t: t.id)
        ordered.sort(key=lambda t: t.occurred_at, reverse=True)
        return [replace(t) for t in ordered]

    def _apply_contribution(self, transaction: Transaction, sign: int) -> None:
        """Add (sign=1) or remove (sign=-1) a transaction's share of spent."""
        if not transaction.is_labeled or not transaction.is_debit:
            return
        category = self._categories.get(transaction.category_id)
        if category is None:
            return
        self._categories[category.id] = replace(
            category, spent=delta(category, transaction.amount, sign)
        )

    def _require_category(self, category_id: Optional[int]) -> Optional[Category]:
        if category_id is None:
            return None
        category = self._categories.get(category_id)
        if category is None:
            raise NotFoundError(f"Category with ID {category_id} not found")
        return category

    def _require_transaction(self, transaction_id: int) -> Transaction:
        transaction = self._transactions.get(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction with ID {transaction_id} not found")
        return transaction

    def _require_unchanged(self, transaction: Transaction) -> None:
        """Fail if the transaction changed between lookup and reservation."""
        latest = self._require_transaction(transaction.id)
        if latest != transaction:
            raise ConflictError(
                f"Transaction {transaction.id} changed concurrently, please retry"
            )

    def _require_unique_name(self, name: str, exclude_id: Optional[int] = None) -> None:
        key = name.casefold()
        for category in self._categories.values():
            if category.id != exclude_id and category.name.casefold() == key:
                raise ValidationError(f"Category '{category.name}' already exists")

    def _parse_recategorize_updates(
        self, updates: List[dict]
    ) -> List[Tuple[int, Optional[int]]]:
        targets = []
        seen = set()
        for index, update in enumerate(updates):
            if "transaction_id" not in update or "category_id" not in update:
                raise ValidationError(
                    f"Update {index} needs transaction_id and category_id"
                )
            transaction_id = update["transaction_id"]
            if transaction_id in seen:
                raise ValidationError(
                    f"Transaction {transaction_id} appears more than once"
                )
            seen.add(transaction_id)
            targets.append((transaction_id, parse_category_id(update["category_id"])))
        return targets

    @contextmanager
    def _reserve(
        self,
        category_ids: Iterable[Optional[int]] = (),
        transaction_ids: Iterable[int] = (),
        names: Iterable[str] = (),
    ):
        """Hold records for the duration of a mutation.

        Raises:
            ConflictError: If any record is already held.
        """
        category_ids = {c for c in category_ids if c is not None}
        transaction_ids = set(transaction_ids)
        names = {n.casefold() for n in names}

        with self._state_lock:
            busy = (
                [f"category {c}" for c in category_ids & self._busy_categories]
                + [f"transaction {t}" for t in transaction_ids & self._busy_transactions]
                + [f"category name '{n}'" for n in names & self._busy_names]
            )
            if self._reloading:
                busy.append("ledger reload")
            if busy:
                raise ConflictError(
                    f"Busy with another change: {', '.join(sorted(busy))}; please retry"
                )
            self._busy_categories |= category_ids
            self._busy_transactions |= transaction_ids
            self._busy_names |= names
            self._in_flight += 1

        try:
            yield
        finally:
            with self._state_lock:
                self._busy_categories -= category_ids
                self._busy_transactions -= transaction_ids
                self._busy_names -= names
                self._in_flight -= 1

    @contextmanager
    def _reserve_all(self):
        """Hold the entire ledger, for replacing the working copy.

        Raises:
            ConflictError: If any record is held or a reload is under way.
        """
        with self._state_lock:
            busy = sorted(
                [f"category {c}" for c in self._busy_categories]
                + [f"transaction {t}" for t in self._busy_transactions]
                + [f"category name '{n}'" for n in self._busy_names]
            )
            if self._in_flight and not busy:
                busy.append(f"{self._in_flight} mutation(s)")
            if self._reloading:
                busy.append("ledger reload")
            if busy:
                raise ConflictError(
                    f"Busy with another change: {', '.join(busy)}; please retry"
                )
            self._reloading = True

        try:
            yield
        finally:
            with self._state_lock:
                self._reloading = False

    def _persist(self, action: str, call, *args, **kwargs):
        """Run a database call, translating its failures into ledger errors."""
        try:
            return call(*args, **kwargs)
        except sqlite3.IntegrityError as e:
            logger.error(f"Failed to {action}: {e}")
            raise ValidationError(f"Failed to {action}: {e}") from e
        except (sqlite3.Error, TimeoutError, OSError) as e:
            logger.error(f"Failed to {action}: {e}")
            raise TransportError(f"Failed to {action}: {e}") from e
