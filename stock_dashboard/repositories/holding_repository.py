import logging
from collections.abc import Iterable
from sqlite3 import Row

from stock_dashboard.db import Database
from stock_dashboard.models import Holding
from stock_dashboard.utils.model_utils import ModelFactory


logger: logging.Logger = logging.getLogger(__name__)


class HoldingRepository:
    def __init__(self, db: Database):
        self.db: Database = db

    def upsert(self, holding: Holding) -> None:
        """Insert a holding, or overwrite the stored row with the same ID."""
        self.upsert_many([holding])

    def upsert_many(self, holdings: Iterable[Holding]) -> int:
        rows = [ModelFactory.to_row(holding) for holding in holdings]
        if not rows:
            return 0
        _ = self.db.executemany(
            """
            INSERT INTO holdings (
                id, user_id, name, ticker, units, avg_cost, current_price, sector,
                low_52_week, high_52_week, notes, date_added, last_updated
            )
            VALUES (
                :id, :user_id, :name, :ticker, :units, :avg_cost, :current_price, :sector,
                :low_52_week, :high_52_week, :notes, :date_added, :last_updated
            )
            ON CONFLICT(user_id, id) DO UPDATE SET
                name = excluded.name,
                ticker = excluded.ticker,
                units = excluded.units,
                avg_cost = excluded.avg_cost,
                current_price = excluded.current_price,
                sector = excluded.sector,
                low_52_week = excluded.low_52_week,
                high_52_week = excluded.high_52_week,
                notes = excluded.notes,
                date_added = excluded.date_added,
                last_updated = excluded.last_updated
            """,
            rows,
        )
        logger.debug(f"Upserted {len(rows)} holdings")
        return len(rows)

    def get_by_id(self, user_id: str, holding_id: str) -> Holding | None:
        row: Row | None = self.db.query_one(
            "SELECT * FROM holdings WHERE user_id = ? AND id = ?",
            (user_id, holding_id),
        )
        if not row:
            return None
        return ModelFactory.create_from_row(Holding, row)

    def get_all(self, user_id: str) -> list[Holding]:
        """
        Retrieve every holding owned by a user.

        Returns:
            Holdings in the order they were added
        """
        rows: list[Row] = self.db.query_all(
            "SELECT * FROM holdings WHERE user_id = ? ORDER BY rowid ASC",
            (user_id,),
        )
        logger.debug(f"Found {len(rows)} holdings for user {user_id}")
        return ModelFactory.create_list_from_rows(Holding, rows)

    def delete_many(self, user_id: str, holding_ids: Iterable[str]) -> int:
        params = [(user_id, holding_id) for holding_id in holding_ids]
        if not params:
            return 0
        _ = self.db.executemany("DELETE FROM holdings WHERE user_id = ? AND id = ?", params)
        logger.debug(f"Deleted {len(params)} holdings for user {user_id}")
        return len(params)

    def delete_all(self, user_id: str) -> None:
        _ = self.db.execute("DELETE FROM holdings WHERE user_id = ?", (user_id,))
