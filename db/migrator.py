"""SQL migration discovery and application."""

import sqlite3
from pathlib import Path
from typing import List, Set

from logger import get_logger

logger = get_logger()


def init_schema_migrations_table(conn: sqlite3.Connection) -> None:
    conn.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            migration_file TEXT PRIMARY KEY,
            applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
    """)
    conn.commit()


def applied_migrations(conn: sqlite3.Connection) -> Set[str]:
    init_schema_migrations_table(conn)
    cursor = conn.execute("SELECT migration_file FROM schema_migrations")
    return {row[0] for row in cursor.fetchall()}


def available_migrations(migrations_dir: Path) -> List[str]:
    """Names of the .sql files in the migrations directory, in apply order."""
    if not migrations_dir.exists():
        return []
    return sorted(path.name for path in migrations_dir.glob("*.sql"))


def pending_migrations(conn: sqlite3.Connection, migrations_dir: Path) -> List[str]:
    applied = applied_migrations(conn)
    return [m for m in available_migrations(migrations_dir) if m not in applied]


def apply_migrations(conn: sqlite3.Connection, migrations_dir: Path) -> List[str]:
    """Apply every pending migration in order.

    Each file is recorded in schema_migrations once it has run. A failing
    migration is rolled back and re-raised; earlier ones stay applied.

    Returns:
        Names of the migrations applied by this call.
    """
    pending = pending_migrations(conn, migrations_dir)
    for migration in pending:
        sql = (migrations_dir / migration).read_text()
        try:
            conn.executescript(sql)
            conn.execute(
                "INSERT INTO schema_migrations (migration_file) VALUES (?)",
                (migration,),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Error applying migration {migration}: {e}")
            raise
        logger.info(f"Applied migration: {migration}")
    return pending
