#!/usr/bin/env python3

from logger import get_logger

logger = get_logger()


def cmd_reconcile(args, ledger):
    """Recompute every category's spent amount from the ledger."""
    categories = ledger.reconcile()
    logger.info(f"✓ Reconciled {len(categories)} categories")
    for category in categories:
        logger.info(f"  {category.name}: spent {category.spent:.2f}")


def setup_parser(subparsers):
    """Setup reconcile command parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "reconcile",
        help="Recompute category totals",
        description="Recompute every category's spent amount from all transactions",
    )
    parser.set_defaults(func=cmd_reconcile)
