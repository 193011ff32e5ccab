#!/usr/bin/env python3

import sys
import json
from pathlib import Path
from config import get_seed_dir
from engine.stats import LedgerStats
from errors import LedgerError
from logger import get_logger

logger = get_logger()


def _print_category(category, stats):
    logger.info(f"ID: {category.id}")
    logger.info(f"Name: {category.name}")
    if category.description:
        logger.info(f"Description: {category.description}")
    logger.info(f"Color: {category.color}")
    if category.has_budget:
        logger.info(
            f"Budget: {category.budget:.2f}  Spent: {stats.spent:.2f}  "
            f"Remaining: {stats.remaining:.2f}  ({stats.usage_percentage:.1f}%)"
        )
        if stats.is_over_budget:
            logger.info("  ! Over budget")
    else:
        logger.info(f"Spent: {stats.spent:.2f} (no budget set)")


def cmd_list(args, ledger):
    """List all categories with their budget figures."""
    stats = LedgerStats(ledger)
    if args.over_budget:
        categories = stats.find_over_budget()
    else:
        categories = ledger.categories()

    if not categories:
        logger.info("No categories found.")
        return

    logger.info("\nCategories:")
    logger.info("=" * 80)
    for category in categories:
        _print_category(category, stats.category_stats(category.id))
        logger.info("-" * 80)

    logger.info(f"\nTotal categories: {len(categories)}")


def cmd_create(args, ledger):
    """Create a new category."""
    category = ledger.add_category(
        {
            "name": args.name,
            "budget": args.budget,
            "color": args.color,
            "description": args.description,
        }
    )
    logger.info(f"\n✓ Category created successfully with ID: {category.id}")
    logger.info(f"  Name: {category.name}")
    logger.info(f"  Budget: {category.budget:.2f}")


def cmd_update(args, ledger):
    """Update a category's fields."""
    changes = {
        field: value
        for field, value in (
            ("name", args.name),
            ("budget", args.budget),
            ("color", args.color),
            ("description", args.description),
        )
        if value is not None
    }
    if not changes:
        logger.error("Nothing to update. Pass --name, --budget, --color or --description.")
        sys.exit(1)

    category = ledger.update_category(args.category_id, changes)
    logger.info(f"✓ Category '{category.name}' updated successfully.")


def cmd_delete(args, ledger):
    """Delete a category by ID. Its transactions become unlabeled."""
    category = ledger.get_category(args.category_id)
    if not category:
        logger.error(f"Category with ID {args.category_id} not found.")
        sys.exit(1)

    affected = LedgerStats(ledger).transactions_for(category.id)

    logger.info("\nCategory to delete:")
    logger.info(f"  ID: {category.id}")
    logger.info(f"  Name: {category.name}")
    logger.info(f"  Transactions that will become unlabeled: {len(affected)}")

    if not args.yes:
        confirm = (
            input("\nAre you sure you want to delete this category? (yes/no): ")
            .strip()
            .lower()
        )
        if confirm != "yes":
            logger.info("Deletion cancelled.")
            return

    ledger.delete_category(category.id)
    logger.info(f"✓ Category '{category.name}' deleted successfully.")


def cmd_stats(args, ledger):
    """Show budget figures across all categories."""
    portfolio = LedgerStats(ledger).portfolio_stats()

    logger.info("\nBudget overview:")
    logger.info("=" * 80)
    logger.info(f"Categories: {portfolio.categories_count}")
    logger.info(f"Total budget: {portfolio.total_budget:.2f}")
    logger.info(f"Total spent: {portfolio.total_spent:.2f}")
    logger.info(f"Total remaining: {portfolio.total_remaining:.2f}")
    logger.info(f"Overall usage: {portfolio.overall_usage_percentage:.1f}%")

    if portfolio.over_budget_categories:
        logger.info(f"\nOver budget ({portfolio.over_budget_count}):")
        for category in portfolio.over_budget_categories:
            logger.info(
                f"  {category.name}: {category.spent:.2f} of {category.budget:.2f}"
            )


def cmd_seed(args, ledger):
    """Seed categories from JSON file."""
    if args.file:
        seed_file = Path(args.file)
    else:
        seed_file = (
            ledger.services.config.seed_file or get_seed_dir() / "categories.json"
        )

    if not seed_file.exists():
        logger.error(f"Seed file not found: {seed_file}")
        sys.exit(1)

    try:
        with open(seed_file, "r") as f:
            categories_data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing JSON file: {e}")
        sys.exit(1)

    logger.info(f"\nSeeding categories from {seed_file}")
    logger.info("=" * 80)

    stats = LedgerStats(ledger)
    created_count = 0
    skipped_count = 0

    for category_data in categories_data:
        name = category_data.get("name")
        if not name:
            logger.warning("Skipping category with no name")
            continue

        if stats.find_by_name(name):
            logger.info(f"⊘ Skipped '{name}' (already exists)")
            skipped_count += 1
            continue

        try:
            category = ledger.add_category(category_data)
        except LedgerError as e:
            logger.error(f"Error creating category '{name}': {e}")
            continue

        logger.info(f"✓ Created '{category.name}' (ID: {category.id})")
        created_count += 1

    logger.info("=" * 80)
    logger.info("\nSeeding complete!")
    logger.info(f"Created: {created_count}")
    logger.info(f"Skipped: {skipped_count}")


def setup_parser(subparsers):
    """Setup categories subcommand parser.

    Args:
        subparsers: The subparsers object from the main CLI
    """
    parser = subparsers.add_parser(
        "categories",
        help="Manage categories",
        description="Create, list, update and delete budget categories",
    )

    categories_subparsers = parser.add_subparsers(
        title="subcommands",
        description="Available category commands",
        dest="subcommand",
        required=True,
    )

    # categories list
    list_parser = categories_subparsers.add_parser("list", help="List all categories")
    list_parser.add_argument(
        "--over-budget",
        action="store_true",
        help="Only show categories that are over budget",
    )
    list_parser.set_defaults(func=cmd_list)

    # categories create
    create_parser = categories_subparsers.add_parser(
        "create", help="Create a new category"
    )
    create_parser.add_argument("name", help="Category name (e.g., Groceries)")
    create_parser.add_argument("--budget", default="0", help="Budget ceiling")
    create_parser.add_argument("--color", help="Hex color, e.g. #3B82F6")
    create_parser.add_argument("--description", help="Optional description")
    create_parser.set_defaults(func=cmd_create)

    # categories update
    update_parser = categories_subparsers.add_parser(
        "update", help="Update a category"
    )
    update_parser.add_argument("category_id", type=int, help="ID of the category")
    update_parser.add_argument("--name", help="New name")
    update_parser.add_argument("--budget", help="New budget ceiling")
    update_parser.add_argument("--color", help="New hex color")
    update_parser.add_argument("--description", help="New description")
    update_parser.set_defaults(func=cmd_update)

    # categories delete
    delete_parser = categories_subparsers.add_parser(
        "delete", help="Delete a category by ID"
    )
    delete_parser.add_argument(
        "category_id",
        type=int,
        help="ID of the category to delete",
    )
    delete_parser.add_argument(
        "--yes", action="store_true", help="Skip the confirmation prompt"
    )
    delete_parser.set_defaults(func=cmd_delete)

    # categories stats
    stats_parser = categories_subparsers.add_parser(
        "stats", help="Show budget totals across categories"
    )
    stats_parser.set_defaults(func=cmd_stats)

    # categories seed
    seed_parser = categories_subparsers.add_parser(
        "seed", help="Seed categories from JSON file"
    )
    seed_parser.add_argument(
        "--file",
        help="JSON file to load (defaults to ledger.seed_file in the config, "
        "then the bundled seed data)",
    )
    seed_parser.set_defaults(func=cmd_seed)
