import logging
import sqlite3
import traceback
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Self


class Database:
    # INFO: Example usage:
    # with Database("portfolio.db") as db:
    #   db.execute("INSERT INTO settings (user_id, key, value) VALUES (?, ?, ?)", ("local", "k", "v"))
    #   Every execute() outside of a transaction() block commits on its own.
    #   with db.transaction():
    #       db.execute(...)  # <- committed together, rolled back together
    def __init__(self, db_path: Path | str) -> None:
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode; transactions are opened explicitly with BEGIN
        self.conn: sqlite3.Connection = sqlite3.connect(db_path, isolation_level=None)
        self.conn.row_factory = sqlite3.Row  # Allows dict-style access
        self.cursor: sqlite3.Cursor = self.conn.cursor()
        self.logger: logging.Logger = logging.getLogger("db")
        self._in_transaction: bool = False

    @staticmethod
    def _check_placeholders(
        query: str, params: Sequence[Any] | Mapping[str, Any]
    ) -> None:
        # Confirm positional and named-placeholders are not being inter-mixed
        if not params:
            return
        if "?" in query and isinstance(params, Mapping):
            raise ValueError("Positional placeholders (?) used with named parameters.")
        if ":" in query and "?" not in query and isinstance(params, (list, tuple)):
            raise ValueError("Named placeholders (:) used with positional parameters.")

    def execute(
        self,
        query: str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> sqlite3.Cursor:
        """
        Executes a single SQL query.
        Supports both positional (?) and named (:param) placeholders.
        Inside a transaction() block the statement joins that transaction,
        otherwise it is committed (or rolled back) on its own.
        """
        if params is None:
            params = ()

        self.logger.debug(f"Preparing SQL execution:\n{query}")
        self.logger.debug(f"Parameters: {params}")
        self._check_placeholders(query, params)

        if self._in_transaction:
            result: sqlite3.Cursor = self.cursor.execute(query, params)
            self.logger.debug(f"Query executed in transaction. Rows affected: {self.cursor.rowcount}")
            return result

        try:
            _ = self.conn.execute("BEGIN")
            result = self.cursor.execute(query, params)
            self.commit()
            self.logger.debug(f"Query executed successfully. Rows affected: {self.cursor.rowcount}")
            return result
        except sqlite3.Error:
            self.conn.rollback()
            self.logger.error("Database error during execute:")
            self.logger.error(traceback.format_exc())
            raise
        except Exception:
            self.conn.rollback()
            self.logger.error("Unexpected error during execute:")
            self.logger.error(traceback.format_exc())
            raise

    def executemany(
        self,
        query: str,
        param_list: Sequence[Sequence[Any]] | Sequence[Mapping[str, Any]],
    ) -> sqlite3.Cursor:
        """
        Executes a SQL query for multiple sets of parameters.
        Supports both positional (?) and named (:param) styles.
        """
        self.logger.debug(f"Preparing bulk execution of SQL:\n{query}")
        self.logger.debug(f"Number of entries: {len(param_list)}")

        if not param_list:
            self.logger.debug("executemany called with an empty parameter list.")
            return self.cursor

        for params in param_list:
            self._check_placeholders(query, params)

        # Preview the first few entries for logging
        self.logger.debug(f"Sample params: {list(param_list)[:3]}")

        if self._in_transaction:
            return self.cursor.executemany(query, param_list)

        try:
            _ = self.conn.execute("BEGIN")
            result: sqlite3.Cursor = self.cursor.executemany(query, param_list)
            self.commit()
            self.logger.debug(f"Successfully wrote {self.cursor.rowcount} records.")
            return result
        except sqlite3.Error:
            self.conn.rollback()
            self.logger.error("Database error during executemany:")
            self.logger.error(traceback.format_exc())
            raise
        except Exception:
            self.conn.rollback()
            self.logger.error("Unexpected error during executemany:")
            self.logger.error(traceback.format_exc())
            raise

    @contextmanager
    def transaction(self) -> Iterator[Self]:
        """
        Group several statements into one atomic write.

        Nested calls join the outer transaction.
        """
        if self._in_transaction:
            yield self
            return

        _ = self.conn.execute("BEGIN")
        self._in_transaction = True
        try:
            yield self
        except Exception:
            self.logger.error("Error inside transaction, rolling back:")
            self.logger.error(traceback.format_exc())
            self._in_transaction = False
            self.rollback()
            raise
        self._in_transaction = False
        self.commit()

    def commit(self) -> None:
        """Commits active transaction to DB, saving changes."""
        try:
            self.conn.commit()
            self.logger.debug("Database changes committed.")
        except sqlite3.DatabaseError as e:
            self.logger.error(f"Error committing changes: {e}")
            raise

    def rollback(self) -> None:
        """Rolls back active transaction to DB, not saving changes (used if error)."""
        try:
            self.conn.rollback()
            self.logger.warning("Database changes rolled back.")
        except sqlite3.DatabaseError as e:
            self.logger.error(f"Error rolling back changes: {e}")
            raise

    def fetchall(self) -> list[sqlite3.Row]:
        """Returns all data from the latest DB query."""
        return self.cursor.fetchall()

    def fetchone(self) -> sqlite3.Row | None:
        """Returns the first row of data from the latest DB query."""
        return self.cursor.fetchone()

    def query_one(
        self, query: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> sqlite3.Row | None:
        """Executes a SELECT query and returns a single result."""
        _ = self.execute(query, params)
        return self.fetchone()

    def query_all(
        self, query: str, params: Sequence[Any] | Mapping[str, Any] | None = None
    ) -> list[sqlite3.Row]:
        """Executes a SELECT query and returns all results."""
        _ = self.execute(query, params)
        return self.fetchall()

    def close(self) -> None:
        """Closes active DB connection."""
        self.conn.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        """Runs when leaving the with block. If error, rollback; then close connection."""
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()

    def create_tables_if_not_exists(self) -> None:
        # Open positions, one row per holding
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS holdings (
            id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            name TEXT NOT NULL,
            ticker TEXT NOT NULL,
            units REAL NOT NULL,
            avg_cost REAL NOT NULL,
            current_price REAL NOT NULL,
            sector TEXT NOT NULL DEFAULT 'Other',
            low_52_week REAL,
            high_52_week REAL,
            notes TEXT NOT NULL DEFAULT '',
            date_added TEXT NOT NULL,
            last_updated TEXT,
            PRIMARY KEY(user_id, id)
        );
        """)
        # Append-only buy/sell ledger
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('buy', 'sell')),
            stock_id TEXT NOT NULL,
            ticker TEXT NOT NULL,
            stock_name TEXT NOT NULL,
            units REAL NOT NULL,
            price REAL NOT NULL,
            date TEXT NOT NULL,
            gain_or_loss REAL,
            notes TEXT NOT NULL DEFAULT '',
            PRIMARY KEY(user_id, id)
        );
        """)
        # Dividends derived from market data
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS dividends (
            id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            stock_id TEXT NOT NULL,
            ticker TEXT NOT NULL,
            stock_name TEXT NOT NULL,
            ex_date TEXT NOT NULL,
            payment_date TEXT NOT NULL,
            amount_per_share REAL NOT NULL,
            total_amount REAL NOT NULL,
            units REAL NOT NULL,
            reinvested INTEGER NOT NULL DEFAULT 0,
            notes TEXT NOT NULL DEFAULT '',
            PRIMARY KEY(user_id, id),
            UNIQUE(user_id, stock_id, ex_date)
        );
        """)
        # Per-user key/value settings, e.g. the last price refresh time
        _ = self.execute("""
        CREATE TABLE IF NOT EXISTS settings (
            user_id TEXT NOT NULL,
            key TEXT NOT NULL,
            value TEXT NOT NULL,
            PRIMARY KEY(user_id, key)
        );
        """)
        self.conn.executescript("""
        CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(user_id, date);
        CREATE INDEX IF NOT EXISTS idx_dividends_ex_date ON dividends(user_id, ex_date);
        """)
