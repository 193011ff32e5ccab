#!/usr/bin/env python3
"""
Spendwise CLI - budget categories and the transactions that fill them.

Usage:
    python -m cli <command> <subcommand> [options]

Commands:
    categories   Create, list and budget categories
    transactions Record, edit, import and export transactions
    reconcile    Recompute every category's spent amount
    migrate      Create or upgrade the database

Examples:
    python -m cli migrate apply
    python -m cli categories seed
    python -m cli categories create Groceries --budget 400
    python -m cli transactions add 54.20 "Weekly shop" --category Groceries
    python -m cli transactions recategorize Groceries 12 13 14
    python -m cli categories stats
"""

import sys
import argparse
from cli import categories, transactions, reconcile, migrate
from config import load_config
from db.manager import DatabaseManager
from engine.controller import LedgerController
from errors import LedgerError
from logger import setup_logging, get_logger
from services.base import Services

COMMAND_MODULES = (categories, transactions, reconcile, migrate)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cli",
        description="Spendwise - budget categories with always-correct totals",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
    )
    for module in COMMAND_MODULES:
        module.setup_parser(subparsers)
    return parser


def open_ledger(config) -> LedgerController:
    """A controller loaded from the configured database."""
    ledger = LedgerController(Services(config))
    ledger.load()
    return ledger


def main():
    """Main CLI entry point with subcommands."""
    parser = build_parser()
    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        config = load_config()
        setup_logging(config)

        # migrate works on the raw database, which may not have a schema yet
        if args.command == "migrate":
            args.func(args, DatabaseManager(config))
        else:
            args.func(args, open_ledger(config))
    except LedgerError as e:
        get_logger().error(str(e))
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
