from datetime import date, datetime
import sqlite3
from unittest.mock import MagicMock

import pytest

from stock_dashboard.models import Dividend, Holding, Transaction
from stock_dashboard.utils.model_utils import ModelFactory, to_camel, to_snake


def _mock_row(row_data: dict) -> MagicMock:
    # A sqlite3.Row double that behaves like a dictionary
    mock_row = MagicMock(spec=sqlite3.Row)
    mock_row.__getitem__.side_effect = lambda key: row_data[key]
    mock_row.keys.return_value = row_data.keys()
    return mock_row


@pytest.mark.parametrize(
    "snake, camel",
    [
        ("avg_cost", "avgCost"),
        ("low_52_week", "low52Week"),
        ("gain_or_loss", "gainOrLoss"),
        ("id", "id"),
    ],
)
def test_case_conversion(snake, camel):
    assert to_camel(snake) == camel
    assert to_snake(camel) == snake


class TestModelFactory:
    """Tests for the ModelFactory class."""

    def test_create_from_row_with_datetime(self):
        row = _mock_row(
            {
                "id": "h1",
                "user_id": "local",
                "name": "Apple Inc.",
                "ticker": "AAPL",
                "units": 10,
                "avg_cost": 150.0,
                "current_price": 175.5,
                "sector": "Technology",
                "low_52_week": None,
                "high_52_week": None,
                "notes": "",
                "date_added": "2024-03-01T09:30:00",
                "last_updated": None,
            }
        )

        holding = ModelFactory.create_from_row(Holding, row)

        assert isinstance(holding, Holding)
        assert holding.ticker == "AAPL"
        assert holding.units == 10.0
        assert isinstance(holding.units, float)
        assert holding.date_added == datetime(2024, 3, 1, 9, 30)
        assert holding.last_updated is None
        assert holding.low_52_week is None

    def test_create_from_row_with_date_and_bool(self):
        row = _mock_row(
            {
                "id": "d1",
                "user_id": "local",
                "stock_id": "h1",
                "ticker": "KO",
                "stock_name": "Coca-Cola",
                "ex_date": "2024-03-14",
                "payment_date": "2024-03-29",
                "amount_per_share": 0.485,
                "total_amount": 48.5,
                "units": 100.0,
                "reinvested": 1,
                "notes": "",
            }
        )

        dividend = ModelFactory.create_from_row(Dividend, row)

        assert dividend.ex_date == date(2024, 3, 14)
        assert dividend.payment_date == date(2024, 3, 29)
        assert dividend.reinvested is True

    def test_create_from_row_ignores_unknown_columns(self):
        row = _mock_row(
            {
                "id": "t1",
                "user_id": "local",
                "type": "buy",
                "stock_id": "h1",
                "ticker": "AAPL",
                "stock_name": "Apple Inc.",
                "units": 5.0,
                "price": 100.0,
                "date": "2024-01-02T00:00:00",
                "gain_or_loss": None,
                "notes": "",
                "rowid": 42,
            }
        )

        transaction = ModelFactory.create_from_row(Transaction, row)

        assert transaction.type == "buy"
        assert transaction.gain_or_loss is None

    def test_missing_required_field(self):
        with pytest.raises(ValueError, match="Missing required field 'ticker'"):
            ModelFactory.create_from_mapping(
                Holding, {"id": "h1", "name": "Apple", "units": 1, "avg_cost": 1, "current_price": 1}
            )

    def test_create_list_from_rows(self):
        rows = [
            _mock_row({"id": f"h{i}", "name": name, "ticker": name, "units": 1.0,
                       "avg_cost": 1.0, "current_price": 1.0})
            for i, name in enumerate(["AAPL", "MSFT", "GOOG"])
        ]

        holdings = ModelFactory.create_list_from_rows(Holding, rows)

        assert [h.ticker for h in holdings] == ["AAPL", "MSFT", "GOOG"]

    def test_invalid_datetime_string_raises(self):
        with pytest.raises(ValueError):
            ModelFactory.create_from_record(
                Transaction,
                {
                    "id": "t1",
                    "type": "buy",
                    "stockId": "h1",
                    "ticker": "AAPL",
                    "stockName": "Apple",
                    "units": 1,
                    "price": 1,
                    "date": "not-a-date",
                },
            )

    def test_non_string_datetime_raises(self):
        with pytest.raises(TypeError, match="ISO datetime"):
            ModelFactory.create_from_record(
                Holding,
                {"id": "h1", "name": "Apple", "ticker": "AAPL", "units": 1,
                 "avgCost": 1, "currentPrice": 1, "dateAdded": 20240101},
            )

    def test_to_record_is_camel_case_and_json_safe(self, make_holding):
        holding = make_holding(id="h1", low_52_week=90.0, date_added=datetime(2024, 3, 1, 9, 30))

        record = ModelFactory.to_record(holding)

        assert record["id"] == "h1"
        assert record["avgCost"] == 100.0
        assert record["low52Week"] == 90.0
        assert record["dateAdded"] == "2024-03-01T09:30:00"
        assert record["lastUpdated"] is None

    def test_to_row_flattens_bools_and_dates(self):
        dividend = Dividend(
            id="d1",
            user_id="local",
            stock_id="h1",
            ticker="KO",
            stock_name="Coca-Cola",
            ex_date=date(2024, 3, 14),
            payment_date=date(2024, 3, 29),
            amount_per_share=0.5,
            total_amount=50.0,
            units=100.0,
            reinvested=True,
        )

        row = ModelFactory.to_row(dividend)

        assert row["reinvested"] == 1
        assert row["ex_date"] == "2024-03-14"

    def test_record_round_trip(self, make_transaction):
        transaction = make_transaction(type="sell", gain_or_loss=-12.5)

        restored = ModelFactory.create_from_record(Transaction, ModelFactory.to_record(transaction))

        assert restored == transaction
