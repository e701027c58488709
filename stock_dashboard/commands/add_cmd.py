"""Add command implementation."""

import argparse
import logging
from typing import Any
from typing_extensions import override

from stock_dashboard.commands.base import Command, CommandRegistry, parse_datetime_arg
from stock_dashboard.errors import PortfolioError, UpstreamError
from stock_dashboard.models import Holding
from stock_dashboard.services.market_data_service import MarketDataService
from stock_dashboard.utils.formatting import format_currency
from stock_dashboard.utils.notifications import notify

logger = logging.getLogger(__name__)


@CommandRegistry.register
class AddCommand(Command):
    """Command to open a new holding."""

    name: str = "add"
    help: str = "Add a new stock holding"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        """Configure the argument parser for the add command."""
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument("ticker", help="Ticker symbol, e.g. AAPL")
        _ = parser.add_argument("--name", help="Company name (defaults to the ticker)")
        _ = parser.add_argument("--units", required=True, help="Number of units bought")
        _ = parser.add_argument("--price", required=True, help="Purchase price per unit")
        _ = parser.add_argument(
            "--current-price", help="Current price (fetched from market data when omitted)"
        )
        _ = parser.add_argument("--sector", default="Other", help="Sector label")
        _ = parser.add_argument("--low-52-week", help="52-week low")
        _ = parser.add_argument("--high-52-week", help="52-week high")
        _ = parser.add_argument("--date", type=parse_datetime_arg, help="Purchase date (YYYY-MM-DD)")
        _ = parser.add_argument("--notes", default="", help="Notes for the holding")
        _ = parser.add_argument(
            "--offline", action="store_true", help="Do not look up prices or 52-week range"
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        """Execute the add command."""
        data: dict[str, Any] = {
            "name": args.name or args.ticker.upper(),
            "ticker": args.ticker,
            "units": args.units,
            "price": args.price,
            "current_price": args.current_price,
            "sector": args.sector,
            "low_52_week": args.low_52_week,
            "high_52_week": args.high_52_week,
            "date": args.date,
            "notes": args.notes,
        }
        if not args.offline:
            self._fill_market_data(data)
        if data["current_price"] is None:
            data["current_price"] = data["price"]

        try:
            holding: Holding = self.portfolio.add_holding(data)
        except PortfolioError as e:
            notify(str(e), "error")
            return 1

        notify(
            f"Added {holding.units:g} units of {holding.ticker} at "
            f"{format_currency(holding.avg_cost)} (ID: {holding.id})",
            "success",
        )
        return 0

    def _fill_market_data(self, data: dict[str, Any]) -> None:
        """Fill in any missing current price and 52-week range from market data."""
        market_data: MarketDataService = self.container.get_service(MarketDataService)
        ticker = str(data["ticker"])
        if data["current_price"] is None:
            try:
                data["current_price"] = market_data.get_quote(ticker).price
            except UpstreamError as e:
                logger.warning(f"Could not fetch current price for {ticker}: {e}")
                notify(f"Could not fetch current price for {ticker}, using purchase price", "warning")
        if data["low_52_week"] is None and data["high_52_week"] is None:
            try:
                week_range = market_data.get_52_week_range(ticker)
                data["low_52_week"] = week_range.low_52_week
                data["high_52_week"] = week_range.high_52_week
            except UpstreamError as e:
                logger.warning(f"Could not fetch 52-week range for {ticker}: {e}")
