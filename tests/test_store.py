import sqlite3
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from stock_dashboard.store import SQLitePortfolioStore

TEST_USER = "test-user"


def test_save_changes_writes_everything(store: SQLitePortfolioStore, make_holding, make_transaction):
    keep = make_holding(id="keep")
    drop = make_holding(id="drop")
    store.save_changes(TEST_USER, holdings=[keep, drop])
    buy = make_transaction(stock_id="keep")

    store.save_changes(TEST_USER, deleted_ids=["drop"], transactions=[buy])

    holdings, transactions = store.load_snapshot(TEST_USER)
    assert holdings == [keep]
    assert transactions == [buy]


def test_failed_save_is_rolled_back(store: SQLitePortfolioStore, make_holding, make_transaction):
    good = make_holding()
    broken = make_holding(name=None)

    with pytest.raises(sqlite3.IntegrityError):
        store.save_changes(TEST_USER, holdings=[good, broken], transactions=[make_transaction()])

    assert store.load_snapshot(TEST_USER) == ([], [])


def test_records_of_another_user_are_rejected(store: SQLitePortfolioStore, make_holding):
    with pytest.raises(ValueError, match="belongs to user"):
        store.save_changes(TEST_USER, holdings=[make_holding(user_id="intruder")])

    assert store.load_snapshot(TEST_USER) == ([], [])


def test_subscribers_get_committed_snapshot(store: SQLitePortfolioStore, make_holding):
    listener = MagicMock()
    other_user = MagicMock()
    _ = store.subscribe(TEST_USER, listener)
    _ = store.subscribe("someone-else", other_user)
    holding = make_holding()

    store.save_changes(TEST_USER, holdings=[holding])

    listener.assert_called_once_with([holding], [])
    other_user.assert_not_called()


def test_unsubscribe_stops_notifications(store: SQLitePortfolioStore, make_holding):
    listener = MagicMock()
    unsubscribe = store.subscribe(TEST_USER, listener)

    unsubscribe()
    unsubscribe()  # Second call is harmless
    store.save_changes(TEST_USER, holdings=[make_holding()])

    listener.assert_not_called()


def test_replace_all(store: SQLitePortfolioStore, make_holding, make_transaction):
    store.save_changes(
        TEST_USER, holdings=[make_holding(id="old")], transactions=[make_transaction(id="old-t")]
    )
    listener = MagicMock()
    _ = store.subscribe(TEST_USER, listener)
    new_holding = make_holding(id="new")
    new_transaction = make_transaction(id="new-t", stock_id="new")

    store.replace_all(TEST_USER, [new_holding], [new_transaction])

    assert store.load_snapshot(TEST_USER) == ([new_holding], [new_transaction])
    listener.assert_called_once_with([new_holding], [new_transaction])


def test_last_price_update(store: SQLitePortfolioStore):
    assert store.last_price_update(TEST_USER) is None

    when = datetime(2024, 6, 3, 16, 30, 5)
    store.record_price_update(TEST_USER, when)

    assert store.last_price_update(TEST_USER) == when
