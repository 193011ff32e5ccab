"""SQLite access for the ledger store."""

import sqlite3
from contextlib import contextmanager
from typing import List
from config import Config, get_migrations_dir
from db import migrator


class DatabaseManager:
    """Opens connections to the configured ledger database.

    Args:
        config: Supplies the database path and lock timeout.
    """

    def __init__(self, config: Config):
        self.config = config

    @contextmanager
    def connect(self):
        """Yield a connection that is closed on exit.

        Foreign keys are switched on for every connection; deleting a
        category relies on them to unlabel its transactions. Waits up to
        config.db_timeout seconds on a locked database before raising
        sqlite3.OperationalError.

        Yields:
            sqlite3.Connection
        """
        self.config.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.config.db_path, timeout=self.config.db_timeout)
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    def get_db_path(self):
        return self.config.db_path

    def get_migrations_dir(self):
        return get_migrations_dir()

    def migration_status(self) -> List[tuple]:
        """(migration file, applied?) for every bundled migration, in order."""
        with self.connect() as conn:
            applied = migrator.applied_migrations(conn)
        return [
            (name, name in applied)
            for name in migrator.available_migrations(self.get_migrations_dir())
        ]

    def migrate(self) -> List[str]:
        """Apply pending migrations; returns the files applied."""
        with self.connect() as conn:
            return migrator.apply_migrations(conn, self.get_migrations_dir())
