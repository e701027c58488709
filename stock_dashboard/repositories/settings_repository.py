import logging
from sqlite3 import Row

from stock_dashboard.db import Database


logger: logging.Logger = logging.getLogger(__name__)


class SettingsRepository:
    """Per-user key/value settings stored as text."""

    def __init__(self, db: Database):
        self.db: Database = db

    def set(self, user_id: str, key: str, value: str) -> None:
        _ = self.db.execute(
            """
            INSERT INTO settings (user_id, key, value)
            VALUES (:user_id, :key, :value)
            ON CONFLICT(user_id, key) DO UPDATE SET value = excluded.value
            """,
            {"user_id": user_id, "key": key, "value": value},
        )
        logger.debug(f"Stored setting {key} for user {user_id}")

    def get(self, user_id: str, key: str) -> str | None:
        row: Row | None = self.db.query_one(
            "SELECT value FROM settings WHERE user_id = ? AND key = ?",
            (user_id, key),
        )
        return row["value"] if row else None
