import logging
from collections.abc import Iterable
from sqlite3 import Row

from stock_dashboard.db import Database
from stock_dashboard.models import Transaction
from stock_dashboard.utils.model_utils import ModelFactory


logger: logging.Logger = logging.getLogger(__name__)


class TransactionRepository:
    """Append-only access to the buy/sell ledger."""

    def __init__(self, db: Database):
        self.db: Database = db

    def insert_many(self, transactions: Iterable[Transaction]) -> int:
        """
        Append transactions, ignoring any whose ID is already stored.

        Returns:
            Number of transactions submitted
        """
        rows = [ModelFactory.to_row(transaction) for transaction in transactions]
        if not rows:
            return 0
        _ = self.db.executemany(
            """
            INSERT OR IGNORE INTO transactions (
                id, user_id, type, stock_id, ticker, stock_name, units, price, date,
                gain_or_loss, notes
            )
            VALUES (
                :id, :user_id, :type, :stock_id, :ticker, :stock_name, :units, :price, :date,
                :gain_or_loss, :notes
            )
            """,
            rows,
        )
        logger.debug(f"Appended {len(rows)} transactions")
        return len(rows)

    def get_all(self, user_id: str) -> list[Transaction]:
        rows: list[Row] = self.db.query_all(
            "SELECT * FROM transactions WHERE user_id = ? ORDER BY rowid ASC",
            (user_id,),
        )
        logger.debug(f"Found {len(rows)} transactions for user {user_id}")
        return ModelFactory.create_list_from_rows(Transaction, rows)

    def get_for_stock(self, user_id: str, stock_id: str) -> list[Transaction]:
        rows: list[Row] = self.db.query_all(
            "SELECT * FROM transactions WHERE user_id = ? AND stock_id = ? ORDER BY date ASC",
            (user_id, stock_id),
        )
        return ModelFactory.create_list_from_rows(Transaction, rows)

    def delete_all(self, user_id: str) -> None:
        # Only used when an import replaces the whole ledger
        _ = self.db.execute("DELETE FROM transactions WHERE user_id = ?", (user_id,))
