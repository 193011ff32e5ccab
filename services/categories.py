"""Category service for database operations."""

from decimal import Decimal
from typing import List, Optional
from models.category import Category, DEFAULT_COLOR

_CATEGORY_SELECT_FIELDS = "id, name, budget, color, description"


class CategoryService:
    """Service for managing categories.

    Categories are stored without their spent amount; that value is derived
    from transactions by the ledger controller.
    """

    def __init__(self, db_manager):
        """Initialize the category service.

        Args:
            db_manager: Database manager instance for database operations.
        """
        self.db_manager = db_manager

    def find_all(self) -> List[Category]:
        """Get all categories from the database.

        Returns:
            List of Category objects, ordered by name (case-insensitive).
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories ORDER BY name COLLATE NOCASE"
            )
            return [self._row_to_category(row) for row in cursor.fetchall()]

    def find(self, category_id: int) -> Optional[Category]:
        """Get a single category by ID.

        Args:
            category_id: The category ID to find.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE id = ?",
                (category_id,),
            )
            row = cursor.fetchone()

            if row:
                return self._row_to_category(row)
            return None

    def find_by_name(self, name: str) -> Optional[Category]:
        """Get a single category by name, ignoring case.

        Args:
            name: The category name to find.

        Returns:
            Category object if found, None otherwise.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                f"SELECT {_CATEGORY_SELECT_FIELDS} FROM categories WHERE name = ? COLLATE NOCASE",
                (name.strip(),),
            )
            row = cursor.fetchone()

            if row:
                return self._row_to_category(row)
            return None

    def create(
        self,
        name: str,
        budget: Decimal = Decimal("0"),
        color: str = DEFAULT_COLOR,
        description: Optional[str] = None,
    ) -> Category:
        """Create a new category.

        Args:
            name: Category name (unique, case-insensitive).
            budget: Budget ceiling, 0 for none.
            color: Display color in hex notation.
            description: Optional description of the category.

        Returns:
            The created Category object with id populated and spent at 0.

        Raises:
            sqlite3.IntegrityError: If the name is already taken.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "INSERT INTO categories (name, budget, color, description) VALUES (?, ?, ?, ?)",
                (name, float(budget), color, description),
            )
            conn.commit()

            return Category(
                id=cursor.lastrowid,
                name=name,
                budget=budget,
                color=color,
                description=description,
            )

    def update(
        self,
        category_id: int,
        name: str,
        budget: Decimal,
        color: str,
        description: Optional[str] = None,
    ) -> Category:
        """Update an existing category.

        Args:
            category_id: The category ID to update.
            name: New category name.
            budget: New budget ceiling.
            color: New display color.
            description: New description (can be None).

        Returns:
            The updated Category object. Its spent is 0; callers that track
            spent keep their own value.

        Raises:
            LookupError: If the category is not found.
        """
        with self.db_manager.connect() as conn:
            cursor = conn.execute(
                "UPDATE categories SET name = ?, budget = ?, color = ?, description = ? WHERE id = ?",
                (name, float(budget), color, description, category_id),
            )
            conn.commit()

            if cursor.rowcount == 0:
                raise LookupError(f"Category with ID {category_id} not found")

            return Category(
                id=category_id,
                name=name,
                budget=budget,
                color=color,
                description=description,
            )

    def delete(self, category_id: int) -> bool:
        """Delete a category by ID.

        Transactions labeled with the category become unlabeled in the same
        database transaction.

        Args:
            category_id: The category ID to delete.

        Returns:
            True if category was deleted, False if not found.
        """
        with self.db_manager.connect() as conn:
            try:
                conn.execute(
                    "UPDATE transactions SET category_id = NULL WHERE category_id = ?",
                    (category_id,),
                )
                cursor = conn.execute(
                    "DELETE FROM categories WHERE id = ?", (category_id,)
                )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            return cursor.rowcount > 0

    def _row_to_category(self, row: tuple) -> Category:
        """Convert a database row to a Category object."""
        return Category(
            id=row[0],
            name=row[1],
            budget=Decimal(str(row[2])),
            color=row[3],
            description=row[4],
        )
