import json
from pathlib import Path

import pytest

from stock_dashboard.db import Database
from stock_dashboard.errors import UpstreamError
from stock_dashboard.main import main
from stock_dashboard.models import Quote
from stock_dashboard.repositories.holding_repository import HoldingRepository
from stock_dashboard.repositories.transaction_repository import TransactionRepository
from stock_dashboard.services.market_data_service import MarketDataService

USER = "cli-user"


@pytest.fixture(autouse=True)
def no_logging_setup(mocker):
    # Keep the test run's logging configuration untouched
    return mocker.patch("stock_dashboard.main.setup_logging")


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "portfolio.db"


@pytest.fixture
def cli(db_path):
    def run(*argv: str) -> int:
        return main(["--db-path", str(db_path), "--user-id", USER, *argv])

    return run


def _holdings(db_path: Path):
    with Database(db_path) as db:
        return HoldingRepository(db).get_all(USER)


def _transactions(db_path: Path):
    with Database(db_path) as db:
        return TransactionRepository(db).get_all(USER)


def _add_apple(cli) -> None:
    assert cli("add", "aapl", "--name", "Apple Inc.", "--units", "100", "--price", "150",
               "--current-price", "160", "--sector", "Technology", "--offline") == 0


def test_no_command_prints_help(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out


def test_add_holding(cli, db_path, capsys):
    _add_apple(cli)

    [holding] = _holdings(db_path)
    assert holding.ticker == "AAPL"
    assert holding.avg_cost == 150.0
    assert holding.current_price == 160.0
    assert "Added 100 units of AAPL" in capsys.readouterr().out


def test_add_uses_market_data(cli, db_path, mocker):
    mocker.patch.object(
        MarketDataService,
        "get_quote",
        return_value=Quote("MSFT", 420.0, 1.0, 0.2, 421.0, 415.0, 100, None),
    )
    mocker.patch.object(MarketDataService, "get_52_week_range", side_effect=UpstreamError("down"))

    assert cli("add", "msft", "--units", "2", "--price", "400") == 0

    [holding] = _holdings(db_path)
    assert holding.name == "MSFT"
    assert holding.current_price == 420.0
    assert holding.high_52_week is None


def test_add_rejects_bad_units(cli, db_path, capsys):
    assert cli("add", "aapl", "--units", "lots", "--price", "1", "--offline") == 1

    assert _holdings(db_path) == []
    assert "Units must be a valid number" in capsys.readouterr().err


def test_buy_and_sell(cli, db_path, capsys):
    _add_apple(cli)
    [holding] = _holdings(db_path)

    assert cli("buy", holding.id, "--units", "100", "--price", "170") == 0
    assert cli("sell", holding.id, "--units", "40", "--price", "175") == 0

    [holding] = _holdings(db_path)
    assert holding.units == 160.0
    assert holding.avg_cost == pytest.approx(160.0)
    sell = _transactions(db_path)[-1]
    assert sell.type == "sell"
    assert sell.gain_or_loss == pytest.approx(600.0)
    assert "for a gain of $600.00" in capsys.readouterr().out


def test_invalid_sell(cli, db_path, capsys):
    _add_apple(cli)
    [holding] = _holdings(db_path)

    assert cli("sell", holding.id, "--units", "101", "--price", "175") == 1

    assert "Invalid number of units to sell" in capsys.readouterr().err
    assert len(_transactions(db_path)) == 1


def test_unknown_holding(cli, capsys):
    assert cli("price", "missing", "10") == 1
    assert "Holding not found: missing" in capsys.readouterr().err


def test_price_and_delete(cli, db_path):
    _add_apple(cli)
    [holding] = _holdings(db_path)

    assert cli("price", holding.id, "99.5") == 0
    assert _holdings(db_path)[0].current_price == 99.5

    assert cli("delete", holding.id, "--yes") == 0
    assert _holdings(db_path) == []
    assert len(_transactions(db_path)) == 1


def test_delete_can_be_cancelled(cli, db_path, mocker):
    _add_apple(cli)
    [holding] = _holdings(db_path)
    mocker.patch("builtins.input", return_value="n")

    assert cli("delete", holding.id) == 0
    assert len(_holdings(db_path)) == 1


def test_export_and_import(cli, db_path, tmp_path):
    _add_apple(cli)
    export_file = tmp_path / "export.json"

    assert cli("export", str(export_file)) == 0
    data = json.loads(export_file.read_text())
    assert [s["ticker"] for s in data["stocks"]] == ["AAPL"]

    other_db = tmp_path / "other.db"
    assert main(["--db-path", str(other_db), "--user-id", USER, "import", str(export_file)]) == 0
    assert [h.ticker for h in _holdings(other_db)] == ["AAPL"]
    assert len(_transactions(other_db)) == 1


def test_import_invalid_file(cli, tmp_path, capsys):
    bad_file = tmp_path / "bad.json"
    bad_file.write_text('{"stocks": "nope"}')

    assert cli("import", str(bad_file), "--replace") == 1
    assert "Error importing data" in capsys.readouterr().err


def test_users_do_not_share_holdings(cli, db_path):
    _add_apple(cli)

    assert main(["--db-path", str(db_path), "--user-id", "someone-else", "report", "holdings"]) == 0
    with Database(db_path) as db:
        assert HoldingRepository(db).get_all("someone-else") == []


def test_refresh_prices(cli, db_path, mocker, capsys):
    _add_apple(cli)
    mocker.patch.object(
        MarketDataService,
        "get_quote",
        return_value=Quote("AAPL", 180.0, 2.0, 1.1, 181.0, 176.0, 100, None),
    )

    assert cli("refresh", "prices") == 0

    assert _holdings(db_path)[0].current_price == 180.0
    out = capsys.readouterr().out
    assert "Updated 1 prices" in out
    assert "Last updated:" in out


def test_refresh_with_no_holdings(cli, capsys):
    assert cli("refresh", "all") == 0
    assert "No holdings to refresh" in capsys.readouterr().out


@pytest.mark.parametrize(
    "report_type", ["summary", "holdings", "transactions", "sectors", "recovery", "gains",
                    "dividends", "recommendations"]
)
def test_reports(cli, report_type, capsys):
    _add_apple(cli)

    assert cli("report", report_type) == 0
    assert capsys.readouterr().out


def test_summary_report(cli, capsys):
    _add_apple(cli)
    capsys.readouterr()

    assert cli("report") == 0

    out = capsys.readouterr().out
    assert "$16,000.00" in out
    assert "+6.67%" in out


def test_dividend_calendar_report(cli, capsys):
    assert cli("report", "dividends", "--month", "2024-06") == 0


def test_invalid_month_is_rejected(cli):
    with pytest.raises(SystemExit):
        cli("report", "dividends", "--month", "2024-13")


def test_chart_report_to_file(cli, tmp_path):
    _add_apple(cli)
    output = tmp_path / "charts" / "dashboard.json"

    assert cli("report", "charts", "--output", str(output)) == 0

    payload = json.loads(output.read_text())
    assert payload["metrics"]["totalValue"] == 16000.0
    assert payload["charts"]["allocation"]["labels"] == ["Technology"]


def test_interactive_add_prints_new_totals(cli, mocker, capsys):
    mocker.patch.object(MarketDataService, "get_52_week_range", side_effect=UpstreamError("down"))
    answers = iter(["4", "aapl", "Apple Inc.", "10", "150", "160", "Technology", "", "0"])
    mocker.patch("builtins.input", side_effect=lambda prompt="": next(answers))

    assert cli("interactive") == 0

    out = capsys.readouterr().out
    assert "Portfolio value: $1,600.00 (+6.67%)" in out
    assert "Goodbye!" in out


def test_import_with_bad_values_leaves_database_untouched(cli, db_path, tmp_path, capsys):
    _add_apple(cli)
    bad_file = tmp_path / "bad_units.json"
    bad_file.write_text(json.dumps({"stocks": [
        {"id": "x1", "name": "Exxon", "ticker": "XOM", "units": None, "avgCost": 100,
         "currentPrice": 110},
    ]}))

    assert cli("import", str(bad_file), "--replace") == 1
    assert "units is required" in capsys.readouterr().err
    assert [h.ticker for h in _holdings(db_path)] == ["AAPL"]
    assert cli("report", "summary") == 0


def test_unusable_database_is_reported(tmp_path, capsys):
    db_dir = tmp_path / "not-a-file"
    db_dir.mkdir()

    assert main(["--db-path", str(db_dir), "--user-id", USER, "report", "summary"]) == 1
    assert "Could not use the portfolio database" in capsys.readouterr().err


def test_ledger_errors_escaping_a_command_are_reported(cli, mocker, capsys):
    mocker.patch(
        "stock_dashboard.commands.report_cmd.ReportCommand.execute",
        side_effect=UpstreamError("quote service unavailable"),
    )

    assert cli("report", "summary") == 1
    assert "Error: quote service unavailable" in capsys.readouterr().err
