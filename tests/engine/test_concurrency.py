import threading
import pytest
from decimal import Decimal

from engine.aggregator import recompute_all
from errors import ConflictError, TransportError
from tests.helpers import raise_error, spent_of

WAIT = 5


class BlockingCall:
    """Wrap a service method so the call pauses until released."""

    def __init__(self, call):
        self.call = call
        self.entered = threading.Event()
        self.release = threading.Event()

    def __call__(self, *args, **kwargs):
        self.entered.set()
        assert self.release.wait(WAIT), "blocked call was never released"
        return self.call(*args, **kwargs)


def recomputed_spent(ledger):
    categories, transactions = ledger.snapshot()
    return {c.id: c.spent for c in recompute_all(categories, transactions)}


def held_spent(ledger):
    return {c.id: c.spent for c in ledger.categories()}


def run_in_thread(target, *args):
    """Run target in a thread, capturing its result or exception."""
    outcome = {}

    def runner():
        try:
            outcome["result"] = target(*args)
        except Exception as e:
            outcome["error"] = e

    thread = threading.Thread(target=runner)
    thread.start()
    return thread, outcome


@pytest.fixture
def blocked_create(services, monkeypatch):
    blocker = BlockingCall(services.transactions.create)
    monkeypatch.setattr(services.transactions, "create", blocker)
    return blocker


class TestConcurrentMutations:
    """Mutations touching the same records are rejected while one is in flight."""

    def test_same_category_rejected_while_in_flight(
        self, ledger, food, blocked_create
    ):
        """Test that a second mutation on a busy category fails fast."""
        thread, outcome = run_in_thread(
            ledger.add_transaction,
            {"amount": 300, "description": "Dinner", "type": "expense", "category_id": food.id},
        )
        assert blocked_create.entered.wait(WAIT)

        try:
            with pytest.raises(ConflictError, match="please retry"):
                ledger.update_category(food.id, {"budget": 50})
            with pytest.raises(ConflictError):
                ledger.delete_category(food.id)
        finally:
            blocked_create.release.set()
            thread.join(WAIT)

        assert "error" not in outcome
        assert spent_of(ledger, food.id) == Decimal("300")
        assert ledger.get_category(food.id).budget == Decimal("1000")

    def test_other_category_proceeds(self, ledger, food, rent, blocked_create):
        """Test that mutations on unrelated categories are not blocked."""
        thread, outcome = run_in_thread(
            ledger.add_transaction,
            {"amount": 300, "description": "Dinner", "type": "expense", "category_id": food.id},
        )
        assert blocked_create.entered.wait(WAIT)

        try:
            updated = ledger.update_category(rent.id, {"budget": 750})
        finally:
            blocked_create.release.set()
            thread.join(WAIT)

        assert updated.budget == Decimal("750")
        assert "error" not in outcome

    def test_readers_see_state_before_mutation(self, ledger, stats, food, blocked_create):
        """Test that reads during a mutation return the previous totals."""
        thread, outcome = run_in_thread(
            ledger.add_transaction,
            {"amount": 300, "description": "Dinner", "type": "expense", "category_id": food.id},
        )
        assert blocked_create.entered.wait(WAIT)

        try:
            during = stats.category_stats(food.id)
            transactions_during = ledger.transactions()
        finally:
            blocked_create.release.set()
            thread.join(WAIT)

        assert during.spent == Decimal("0")
        assert transactions_during == []
        assert stats.category_stats(food.id).spent == Decimal("300")
        assert outcome["result"].id is not None

    def test_same_transaction_rejected_while_in_flight(
        self, ledger, services, food, rent, monkeypatch
    ):
        """Test that a transaction being updated cannot be deleted meanwhile."""
        transaction = ledger.add_transaction(
            {"amount": 40, "description": "Taxi", "type": "expense"}
        )
        blocker = BlockingCall(services.transactions.update)
        monkeypatch.setattr(services.transactions, "update", blocker)

        thread, outcome = run_in_thread(
            ledger.update_transaction, transaction.id, {"category_id": rent.id}
        )
        assert blocker.entered.wait(WAIT)

        try:
            with pytest.raises(ConflictError, match=f"transaction {transaction.id}"):
                ledger.delete_transaction(transaction.id)
        finally:
            blocker.release.set()
            thread.join(WAIT)

        assert "error" not in outcome
        assert spent_of(ledger, rent.id) == Decimal("40")
        assert spent_of(ledger, food.id) == Decimal("0")

    def test_same_new_name_rejected_while_in_flight(
        self, ledger, services, monkeypatch
    ):
        """Test that two categories with the same name cannot be created at once."""
        blocker = BlockingCall(services.categories.create)
        monkeypatch.setattr(services.categories, "create", blocker)

        thread, outcome = run_in_thread(ledger.add_category, {"name": "Travel"})
        assert blocker.entered.wait(WAIT)

        try:
            with pytest.raises(ConflictError, match="category name"):
                ledger.add_category({"name": "TRAVEL"})
        finally:
            blocker.release.set()
            thread.join(WAIT)

        assert "error" not in outcome
        assert [c.name for c in ledger.categories()] == ["Travel"]

    def test_reservations_released_after_failure(self, ledger, services, food, monkeypatch):
        """Test that a failed mutation does not leave its records busy."""
        monkeypatch.setattr(
            services.categories,
            "update",
            raise_error(TimeoutError("timed out")),
        )

        with pytest.raises(TransportError):
            ledger.update_category(food.id, {"budget": 5})
        monkeypatch.undo()

        updated = ledger.update_category(food.id, {"budget": 5})

        assert updated.budget == Decimal("5")


class TestReloadAndReconcileDuringMutations:
    """load() and reconcile() never fold in a half-applied mutation."""

    def test_load_rejected_while_mutation_in_flight(
        self, ledger, food, blocked_create
    ):
        """Test that a committed but unapplied add is not counted twice."""
        thread, outcome = run_in_thread(
            ledger.add_transaction,
            {"amount": 300, "description": "Dinner", "type": "expense", "category_id": food.id},
        )
        assert blocked_create.entered.wait(WAIT)

        try:
            with pytest.raises(ConflictError, match=f"category {food.id}"):
                ledger.load()
        finally:
            blocked_create.release.set()
            thread.join(WAIT)

        assert "error" not in outcome
        assert held_spent(ledger) == recomputed_spent(ledger) == {food.id: Decimal("300")}

        ledger.load()

        assert spent_of(ledger, food.id) == Decimal("300")

    def test_load_rejected_while_unlabeled_add_in_flight(self, ledger, blocked_create):
        """Test that a mutation holding no category still blocks a reload."""
        thread, outcome = run_in_thread(
            ledger.add_transaction,
            {"amount": 5, "description": "Parking", "type": "expense"},
        )
        assert blocked_create.entered.wait(WAIT)

        try:
            with pytest.raises(ConflictError, match="mutation"):
                ledger.load()
        finally:
            blocked_create.release.set()
            thread.join(WAIT)

        assert "error" not in outcome
        assert len(ledger.transactions()) == 1

    def test_mutation_rejected_while_load_in_flight(
        self, ledger, services, food, monkeypatch
    ):
        """Test that nothing may change the ledger while it is being reloaded."""
        blocker = BlockingCall(services.transactions.find_all)
        monkeypatch.setattr(services.transactions, "find_all", blocker)

        thread, outcome = run_in_thread(ledger.load)
        assert blocker.entered.wait(WAIT)

        try:
            with pytest.raises(ConflictError, match="ledger reload"):
                ledger.add_transaction(
                    {"amount": 10, "description": "Tea", "type": "expense", "category_id": food.id}
                )
            with pytest.raises(ConflictError, match="ledger reload"):
                ledger.load()
        finally:
            blocker.release.set()
            thread.join(WAIT)

        assert "error" not in outcome
        assert ledger.transactions() == []
        assert spent_of(ledger, food.id) == Decimal("0")

    def test_reconcile_during_mutation_sees_applied_state_only(
        self, ledger, food, blocked_create
    ):
        """Test that reconcile mid-mutation neither counts nor loses the add."""
        thread, outcome = run_in_thread(
            ledger.add_transaction,
            {"amount": 300, "description": "Dinner", "type": "expense", "category_id": food.id},
        )
        assert blocked_create.entered.wait(WAIT)

        try:
            during = ledger.reconcile()
        finally:
            blocked_create.release.set()
            thread.join(WAIT)

        assert "error" not in outcome
        assert [c.spent for c in during] == [Decimal("0")]
        assert held_spent(ledger) == recomputed_spent(ledger) == {food.id: Decimal("300")}
