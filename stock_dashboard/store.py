"""
Persistence port for the portfolio ledger.

The ledger never talks to SQLite directly. It writes through a PortfolioStore
and receives fresh (holdings, transactions) snapshots from it after every
committed write.
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import Protocol

from stock_dashboard.db import Database
from stock_dashboard.models import Holding, Transaction
from stock_dashboard.repositories.holding_repository import HoldingRepository
from stock_dashboard.repositories.settings_repository import SettingsRepository
from stock_dashboard.repositories.transaction_repository import TransactionRepository

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[list[Holding], list[Transaction]], None]

LAST_PRICE_UPDATE_KEY = "last_price_update"


class PortfolioStore(Protocol):
    def load_snapshot(self, user_id: str) -> tuple[list[Holding], list[Transaction]]: ...

    def save_changes(
        self,
        user_id: str,
        holdings: Sequence[Holding] = (),
        deleted_ids: Sequence[str] = (),
        transactions: Sequence[Transaction] = (),
    ) -> None: ...

    def replace_all(
        self, user_id: str, holdings: Sequence[Holding], transactions: Sequence[Transaction]
    ) -> None: ...

    def subscribe(self, user_id: str, listener: SnapshotListener) -> Callable[[], None]: ...

    def record_price_update(self, user_id: str, when: datetime) -> None: ...

    def last_price_update(self, user_id: str) -> datetime | None: ...


class SQLitePortfolioStore:
    """PortfolioStore backed by the local SQLite database."""

    def __init__(
        self,
        db: Database,
        holding_repo: HoldingRepository,
        transaction_repo: TransactionRepository,
        settings_repo: SettingsRepository,
    ):
        self.db = db
        self.holding_repo = holding_repo
        self.transaction_repo = transaction_repo
        self.settings_repo = settings_repo
        self._listeners: dict[str, list[SnapshotListener]] = {}

    def load_snapshot(self, user_id: str) -> tuple[list[Holding], list[Transaction]]:
        return self.holding_repo.get_all(user_id), self.transaction_repo.get_all(user_id)

    def save_changes(
        self,
        user_id: str,
        holdings: Sequence[Holding] = (),
        deleted_ids: Sequence[str] = (),
        transactions: Sequence[Transaction] = (),
    ) -> None:
        """
        Write upserted holdings, deletions and new transactions as one atomic change.

        Subscribers are notified once, after the commit.
        """
        self._check_owner(user_id, holdings, transactions)
        with self.db.transaction():
            _ = self.holding_repo.upsert_many(holdings)
            _ = self.holding_repo.delete_many(user_id, deleted_ids)
            _ = self.transaction_repo.insert_many(transactions)
        logger.debug(
            f"Saved {len(holdings)} holdings, {len(deleted_ids)} deletions and "
            f"{len(transactions)} transactions for user {user_id}"
        )
        self._notify(user_id)

    def replace_all(
        self, user_id: str, holdings: Sequence[Holding], transactions: Sequence[Transaction]
    ) -> None:
        """Replace everything the user owns with the given records."""
        self._check_owner(user_id, holdings, transactions)
        with self.db.transaction():
            self.holding_repo.delete_all(user_id)
            self.transaction_repo.delete_all(user_id)
            _ = self.holding_repo.upsert_many(holdings)
            _ = self.transaction_repo.insert_many(transactions)
        logger.info(
            f"Replaced portfolio for user {user_id}: "
            f"{len(holdings)} holdings, {len(transactions)} transactions"
        )
        self._notify(user_id)

    def subscribe(self, user_id: str, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register a listener for committed snapshots of one user's portfolio.

        Returns:
            A function that removes the listener again
        """
        listeners = self._listeners.setdefault(user_id, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def record_price_update(self, user_id: str, when: datetime) -> None:
        self.settings_repo.set(user_id, LAST_PRICE_UPDATE_KEY, when.isoformat())

    def last_price_update(self, user_id: str) -> datetime | None:
        value = self.settings_repo.get(user_id, LAST_PRICE_UPDATE_KEY)
        return datetime.fromisoformat(value) if value else None

    @staticmethod
    def _check_owner(
        user_id: str, holdings: Iterable[Holding], transactions: Iterable[Transaction]
    ) -> None:
        for record in (*holdings, *transactions):
            if record.user_id != user_id:
                raise ValueError(
                    f"Record {record.id} belongs to user '{record.user_id}', not '{user_id}'"
                )

    def _notify(self, user_id: str) -> None:
        listeners = list(self._listeners.get(user_id, []))
        if not listeners:
            return
        holdings, transactions = self.load_snapshot(user_id)
        for listener in listeners:
            listener(holdings, transactions)
