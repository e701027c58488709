from datetime import date
import logging
from sqlite3 import Row

from stock_dashboard.db import Database
from stock_dashboard.models import Dividend
from stock_dashboard.utils.model_utils import ModelFactory

logger: logging.Logger = logging.getLogger(__name__)


class DividendRepository:
    def __init__(self, db: Database):
        self.db: Database = db

    def insert(self, dividend: Dividend) -> str:
        """Insert a new dividend record into the database."""
        _ = self.db.execute(
            """
            INSERT INTO dividends (
                id, user_id, stock_id, ticker, stock_name, ex_date, payment_date,
                amount_per_share, total_amount, units, reinvested, notes
            )
            VALUES (
                :id, :user_id, :stock_id, :ticker, :stock_name, :ex_date, :payment_date,
                :amount_per_share, :total_amount, :units, :reinvested, :notes
            )
            """,
            ModelFactory.to_row(dividend),
        )
        logger.debug(f"Inserted dividend for stock ID {dividend.stock_id} on {dividend.ex_date}")
        return dividend.id

    def get_dividends_for_user(self, user_id: str) -> list[Dividend]:
        """Get every stored dividend for a user, oldest ex-date first."""
        rows: list[Row] = self.db.query_all(
            """
            SELECT * FROM dividends
            WHERE user_id = ?
            ORDER BY ex_date ASC
            """,
            (user_id,),
        )
        logger.debug(f"Found {len(rows)} dividends for user {user_id}")
        return ModelFactory.create_list_from_rows(Dividend, rows)

    def get_dividends_for_stock(self, user_id: str, stock_id: str) -> list[Dividend]:
        """Get all dividends for a specific holding."""
        rows: list[Row] = self.db.query_all(
            """
            SELECT * FROM dividends
            WHERE user_id = ? AND stock_id = ?
            ORDER BY ex_date ASC
            """,
            (user_id, stock_id),
        )
        logger.debug(f"Found {len(rows)} dividends for stock ID {stock_id}")
        return ModelFactory.create_list_from_rows(Dividend, rows)

    def get_dividend_by_ex_date(
        self, user_id: str, stock_id: str, ex_date: date
    ) -> Dividend | None:
        """Get a specific dividend by its ex-date."""
        row: Row | None = self.db.query_one(
            """
            SELECT * FROM dividends
            WHERE user_id = ? AND stock_id = ? AND ex_date = ?
            """,
            (user_id, stock_id, ex_date.isoformat()),
        )
        if row:
            return ModelFactory.create_from_row(Dividend, row)
        return None
