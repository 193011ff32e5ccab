#!/usr/bin/env python3

from logger import get_logger

logger = get_logger()


def cmd_status(args, db_manager):
    """Show which schema migrations have been applied."""
    if not db_manager.get_db_path().exists():
        logger.info(
            "No ledger database yet. Run 'python -m cli migrate apply' to create it."
        )
        return

    status = db_manager.migration_status()
    if not status:
        logger.info("No migrations found.")
        return

    logger.info("Migration Status:")
    logger.info("================")
    for migration, applied in status:
        logger.info(f"{migration}: {'APPLIED' if applied else 'PENDING'}")

    applied_count = sum(1 for _, applied in status if applied)
    logger.info(f"\nTotal migrations: {len(status)}")
    logger.info(f"Applied: {applied_count}")
    logger.info(f"Pending: {len(status) - applied_count}")


def cmd_apply(args, db_manager):
    """Create or upgrade the ledger schema."""
    applied = db_manager.migrate()

    if not applied:
        logger.info("Schema is up to date.")
        return
    for migration in applied:
        logger.info(f"  applied {migration}")
    logger.info(f"Successfully applied {len(applied)} migration(s).")


def setup_parser(subparsers):
    """Setup migrate subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "migrate",
        help="Create or upgrade the ledger database",
        description="Apply the SQL schema migrations shipped with spendwise",
    )

    migrate_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available migration commands",
        dest="subcommand",
        required=True,
    )

    migrate_subparsers.add_parser(
        "status", help="List applied and pending migrations"
    ).set_defaults(func=cmd_status)
    migrate_subparsers.add_parser(
        "apply", help="Apply pending migrations"
    ).set_defaults(func=cmd_apply)
