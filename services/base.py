"""The store used by the ledger controller."""

from config import Config
from db.manager import DatabaseManager
from services.categories import CategoryService
from services.transactions import TransactionService


class Services:
    """Category and transaction persistence over one database.

    Args:
        config: Application configuration.
        db_manager: Connection provider; tests pass one backed by an
            in-memory database. Built from config when omitted.
    """

    def __init__(self, config: Config, db_manager=None):
        self.config = config
        self.db_manager = db_manager or DatabaseManager(config)

        self.categories = CategoryService(self.db_manager)
        self.transactions = TransactionService(self.db_manager)
