"""Refresh command implementation."""

import argparse
import logging
from typing_extensions import override

from stock_dashboard.commands.base import Command, CommandRegistry
from stock_dashboard.services.dividend_service import DividendService
from stock_dashboard.services.market_data_service import MarketDataService
from stock_dashboard.utils.formatting import format_date
from stock_dashboard.utils.notifications import notify

logger = logging.getLogger(__name__)


@CommandRegistry.register
class RefreshCommand(Command):
    """Command to refresh market data for every holding."""

    name: str = "refresh"
    help: str = "Refresh prices, 52-week ranges or dividends from market data"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        """Configure the argument parser for the refresh command."""
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument(
            "type",
            choices=["prices", "ranges", "dividends", "all"],
            help="Type of data to refresh",
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        """Execute the refresh command."""
        refresh_type: str = args.type
        if not self.portfolio.get_all_stocks():
            notify("No holdings to refresh", "info")
            return 0

        market_data: MarketDataService = self.container.get_service(MarketDataService)

        if refresh_type in ("prices", "all"):
            self._refresh_prices(market_data)

        if refresh_type in ("ranges", "all"):
            self._refresh_ranges(market_data)

        if refresh_type in ("dividends", "all"):
            self._refresh_dividends()

        return 0

    def _refresh_prices(self, market_data: MarketDataService) -> None:
        holdings = self.portfolio.get_all_stocks()
        print(f"Refreshing prices for {len(holdings)} holdings...")
        updates = self.portfolio.update_prices(market_data)

        failed = len(holdings) - len(updates)
        if failed:
            notify(f"Updated {len(updates)} prices, {failed} could not be fetched", "warning")
        else:
            notify(f"Updated {len(updates)} prices", "success")

        last_update = self.portfolio.store.last_price_update(self.config.user_id)
        if last_update:
            print(f"Last updated: {format_date(last_update, 'medium')}")

    def _refresh_ranges(self, market_data: MarketDataService) -> None:
        holdings = self.portfolio.get_all_stocks()
        print(f"Refreshing 52-week ranges for {len(holdings)} holdings...")
        ranges = self.portfolio.update_week_ranges(market_data)
        notify(f"Updated 52-week ranges for {len(ranges)} of {len(holdings)} holdings", "success")

    def _refresh_dividends(self) -> None:
        dividend_service: DividendService = self.container.get_service(DividendService)
        holdings = self.portfolio.get_all_stocks()
        print(f"Refreshing dividends for {len(holdings)} holdings...")
        refreshed = dividend_service.refresh_dividends(holdings)
        notify(f"Refreshed dividends for {refreshed} of {len(holdings)} holdings", "success")
