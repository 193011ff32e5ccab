#!/usr/bin/env python3

import sys
import argparse
import csv
import json
from pathlib import Path
from datetime import datetime
from engine.stats import LedgerStats
from logger import get_logger

logger = get_logger()


def _resolve_category_id(stats, category_input):
    """Look up a category by ID first, then by name. Returns None for 'none'."""
    if category_input is None or category_input.lower() == "none":
        return None

    try:
        category = stats.find_by_id(int(category_input))
    except ValueError:
        category = stats.find_by_name(category_input)

    if not category:
        logger.error(f"Category '{category_input}' not found.")
        logger.info("Use 'python -m cli categories list' to see available categories.")
        sys.exit(1)
    return category.id


def _parse_date(value):
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.error(f"Invalid date '{value}'. Use YYYY-MM-DD or YYYY-MM-DDTHH:MM.")
        sys.exit(1)


def cmd_list(args, ledger):
    """List transactions, newest first."""
    stats = LedgerStats(ledger)

    if args.unlabeled:
        transactions = stats.unlabeled_transactions()
    elif args.category:
        transactions = stats.transactions_for(
            _resolve_category_id(stats, args.category)
        )
    elif args.search:
        transactions = stats.search_transactions(args.search)
    else:
        transactions = ledger.transactions()

    if not transactions:
        logger.info("No transactions found.")
        return

    category_map = {c.id: c.name for c in ledger.categories()}
    for t in transactions:
        sign = "-" if t.is_debit else "+"
        category_name = category_map.get(t.category_id, "(unlabeled)")
        logger.info(
            f"{t.id:>6}  {t.occurred_at:%Y-%m-%d}  {sign}{t.amount:>10.2f}  "
            f"{category_name:<20}  {t.description}"
        )

    logger.info(f"\nTotal transactions: {len(transactions)}")


def cmd_add(args, ledger):
    """Add a transaction."""
    stats = LedgerStats(ledger)
    data = {
        "amount": args.amount,
        "description": args.description,
        "type": args.type,
        "category_id": _resolve_category_id(stats, args.category),
    }
    if args.date:
        data["occurred_at"] = _parse_date(args.date)

    transaction = ledger.add_transaction(data)
    logger.info(f"✓ Transaction added with ID: {transaction.id}")

    if transaction.is_labeled:
        category_stats = stats.category_stats(transaction.category_id)
        logger.info(
            f"  Category spent: {category_stats.spent:.2f} "
            f"of {category_stats.budget:.2f}"
        )
        if category_stats.is_over_budget:
            logger.warning("  Category is over budget")


def cmd_update(args, ledger):
    """Update a transaction's fields."""
    stats = LedgerStats(ledger)
    changes = {}
    if args.amount is not None:
        changes["amount"] = args.amount
    if args.description is not None:
        changes["description"] = args.description
    if args.type is not None:
        changes["type"] = args.type
    if args.category is not None:
        changes["category_id"] = _resolve_category_id(stats, args.category)
    if args.date is not None:
        changes["occurred_at"] = _parse_date(args.date)

    if not changes:
        logger.error("Nothing to update.")
        sys.exit(1)

    transaction = ledger.update_transaction(args.transaction_id, changes)
    logger.info(f"✓ Transaction {transaction.id} updated successfully")


def cmd_delete(args, ledger):
    """Delete a transaction."""
    transaction = ledger.delete_transaction(args.transaction_id)
    logger.info(f"✓ Deleted transaction {transaction.id}: {transaction.description}")


def cmd_recategorize(args, ledger):
    """Move one or more transactions to a category."""
    stats = LedgerStats(ledger)
    category_id = _resolve_category_id(stats, args.category)

    updated = ledger.bulk_recategorize(
        [{"transaction_id": tid, "category_id": category_id} for tid in args.ids]
    )
    logger.info(f"✓ Recategorized {len(updated)} transaction(s)")


def cmd_import(args, ledger):
    """Import transactions from a JSON file and reconcile category totals.

    The file holds a list of objects with amount, description, type or
    direction, and optional category (name), category_id and occurred_at.
    """
    path = Path(args.json_file)
    if not path.exists():
        logger.error(f"File not found: {args.json_file}")
        sys.exit(1)

    try:
        with open(path, "r") as f:
            records = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing JSON file: {e}")
        sys.exit(1)

    if isinstance(records, dict):
        records = records.get("transactions", [])

    stats = LedgerStats(ledger)
    for record in records:
        # Category names are resolved to ids before reaching the ledger
        if "category" in record:
            record["category_id"] = _resolve_category_id(stats, record.pop("category"))

    imported = ledger.import_transactions(records)
    logger.info(f"✓ Imported {len(imported)} transaction(s) from {path}")


def cmd_export(args, ledger):
    """Export transactions to CSV."""
    stats = LedgerStats(ledger)
    if args.start_date and args.end_date:
        transactions = stats.transactions_between(
            _parse_date(args.start_date), _parse_date(args.end_date)
        )
    elif args.start_date or args.end_date:
        logger.error("--start-date and --end-date must be given together")
        sys.exit(1)
    else:
        transactions = ledger.transactions()

    if not transactions:
        logger.info("No transactions found for the specified criteria.")
        return

    category_map = {c.id: c.name for c in ledger.categories()}
    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", newline="") as csvfile:
        writer = csv.writer(csvfile)
        writer.writerow(
            [
                "id",
                "occurred_at",
                "description",
                "amount",
                "transaction_type",
                "direction",
                "category_name",
            ]
        )
        for t in transactions:
            writer.writerow(
                [
                    t.id,
                    t.occurred_at.isoformat(),
                    t.description,
                    str(t.amount),
                    t.type,
                    t.direction,
                    category_map.get(t.category_id, ""),
                ]
            )

    logger.info(f"✓ Exported {len(transactions)} transaction(s) to: {output_path}")


def setup_parser(subparsers):
    """Setup transactions subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "transactions",
        help="Record and manage transactions",
        description="Add, edit, categorize, import and export transactions",
    )

    transactions_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available transaction commands",
        dest="subcommand",
        required=True,
    )

    # transactions list
    list_parser = transactions_subparsers.add_parser("list", help="List transactions")
    filter_group = list_parser.add_mutually_exclusive_group()
    filter_group.add_argument("--category", help="Category name or ID")
    filter_group.add_argument(
        "--unlabeled", action="store_true", help="Only unlabeled transactions"
    )
    filter_group.add_argument("--search", help="Search description or amount")
    list_parser.set_defaults(func=cmd_list)

    # transactions add
    add_parser = transactions_subparsers.add_parser(
        "add",
        help="Add a transaction",
        epilog="""
Examples:
  python -m cli transactions add 12.50 "Lunch" --category Food
  python -m cli transactions add 2500 "Salary" --type income
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    add_parser.add_argument("amount", help="Amount (positive)")
    add_parser.add_argument("description", help="What the transaction was for")
    add_parser.add_argument(
        "--type",
        choices=["income", "expense"],
        default="expense",
        help="Transaction type (default: expense)",
    )
    add_parser.add_argument("--category", help="Category name or ID")
    add_parser.add_argument("--date", help="When it happened (YYYY-MM-DD)")
    add_parser.set_defaults(func=cmd_add)

    # transactions update
    update_parser = transactions_subparsers.add_parser(
        "update", help="Update a transaction"
    )
    update_parser.add_argument("transaction_id", type=int, help="Transaction ID")
    update_parser.add_argument("--amount", help="New amount")
    update_parser.add_argument("--description", help="New description")
    update_parser.add_argument("--type", choices=["income", "expense"], help="New type")
    update_parser.add_argument(
        "--category", help="New category name or ID ('none' to unlabel)"
    )
    update_parser.add_argument("--date", help="New date (YYYY-MM-DD)")
    update_parser.set_defaults(func=cmd_update)

    # transactions delete
    delete_parser = transactions_subparsers.add_parser(
        "delete", help="Delete a transaction"
    )
    delete_parser.add_argument("transaction_id", type=int, help="Transaction ID")
    delete_parser.set_defaults(func=cmd_delete)

    # transactions recategorize
    recategorize_parser = transactions_subparsers.add_parser(
        "recategorize",
        help="Move transactions to a category",
        description="Assign a category to one or more transactions at once",
    )
    recategorize_parser.add_argument(
        "category", help="Category name or ID ('none' to unlabel)"
    )
    recategorize_parser.add_argument(
        "ids", type=int, nargs="+", help="Transaction IDs"
    )
    recategorize_parser.set_defaults(func=cmd_recategorize)

    # transactions import
    import_parser = transactions_subparsers.add_parser(
        "import", help="Import transactions from a JSON file"
    )
    import_parser.add_argument("json_file", help="Path to the JSON file")
    import_parser.set_defaults(func=cmd_import)

    # transactions export
    export_parser = transactions_subparsers.add_parser(
        "export", help="Export transactions to CSV"
    )
    export_parser.add_argument("--start-date", help="Start date (YYYY-MM-DD)")
    export_parser.add_argument("--end-date", help="End date (YYYY-MM-DD)")
    export_parser.add_argument(
        "--output",
        default="transactions.csv",
        help="Output CSV file (default: transactions.csv)",
    )
    export_parser.set_defaults(func=cmd_export)
