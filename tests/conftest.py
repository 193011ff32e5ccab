"""Shared pytest fixtures for all tests."""

import sqlite3
import pytest

from config import Config, get_migrations_dir
from engine.controller import LedgerController
from engine.stats import LedgerStats
from services.base import Services
from tests.helpers import InMemoryDatabaseManager, run_migrations


@pytest.fixture
def test_db():
    """In-memory SQLite database with foreign keys on.

    check_same_thread is off so concurrency tests can use it from a worker
    thread.

    Yields:
        sqlite3.Connection: Connection to in-memory database.
    """
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    conn.execute("PRAGMA foreign_keys = ON")
    yield conn
    conn.close()


@pytest.fixture
def test_config(tmp_path):
    """Configuration rooted in a temporary directory.

    Returns:
        Config: Test configuration object.
    """
    base_dir = tmp_path / "spendwise"
    return Config(
        base_dir=base_dir,
        db_data_dir=base_dir / "db",
        db_filename="test.db",
        log_level="DEBUG",
        log_dir=base_dir / "logs",
        db_timeout=1.0,
    )


@pytest.fixture
def db_manager_with_schema(test_db):
    """An InMemoryDatabaseManager with every migration applied."""
    run_migrations(test_db, get_migrations_dir())
    return InMemoryDatabaseManager(test_db)


@pytest.fixture
def services(test_config, db_manager_with_schema):
    """Services container over the in-memory database."""
    return Services(test_config, db_manager=db_manager_with_schema)


@pytest.fixture
def ledger(services):
    """A LedgerController loaded from the (empty) test database."""
    controller = LedgerController(services)
    controller.load()
    return controller


@pytest.fixture
def stats(ledger):
    """A LedgerStats facade over the ledger fixture."""
    return LedgerStats(ledger)


@pytest.fixture
def food(ledger):
    """A category with a budget of 1000."""
    return ledger.add_category({"name": "Food", "budget": 1000})


@pytest.fixture
def rent(ledger):
    """A category with a budget of 500."""
    return ledger.add_category({"name": "Rent", "budget": 500})
