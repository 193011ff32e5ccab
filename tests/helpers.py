"""Helper utilities for tests."""

from contextlib import contextmanager
from pathlib import Path
import sqlite3

from config import get_migrations_dir
from db.migrator import apply_migrations


def run_migrations(conn: sqlite3.Connection, migrations_dir: Path) -> None:
    """Run all SQL migrations in order.

    Args:
        conn: SQLite connection to run migrations against.
        migrations_dir: Path to directory containing .sql migration files.
    """
    apply_migrations(conn, migrations_dir)


class InMemoryDatabaseManager:
    """Stands in for DatabaseManager over one shared connection.

    The connection stays open across connect() calls; the fixture that
    created it closes it.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @contextmanager
    def connect(self):
        yield self.conn

    def get_db_path(self):
        return Path(":memory:")

    def get_migrations_dir(self):
        return get_migrations_dir()


def raise_error(error: Exception):
    """Build a stand-in for a service method that always fails with error."""

    def _raise(*args, **kwargs):
        raise error

    return _raise


def spent_of(ledger, category_id):
    """The spent amount the ledger currently holds for a category."""
    return ledger.get_category(category_id).spent
