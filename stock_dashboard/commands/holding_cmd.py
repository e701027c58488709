"""Delete and price command implementations."""

import argparse
import logging
from typing_extensions import override

from stock_dashboard.commands.base import Command, CommandRegistry
from stock_dashboard.errors import PortfolioError
from stock_dashboard.utils.formatting import format_currency
from stock_dashboard.utils.notifications import notify

logger = logging.getLogger(__name__)


@CommandRegistry.register
class DeleteCommand(Command):
    """Command to delete a holding without recording a sale."""

    name: str = "delete"
    help: str = "Delete a holding (no transaction is recorded)"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument("holding_id", help="ID of the holding")
        _ = parser.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    @override
    def execute(self, args: argparse.Namespace) -> int:
        holding = self.portfolio.get_stock_by_id(args.holding_id)
        if holding and not args.yes:
            answer = input(f"Delete {holding.ticker} ({holding.units:g} units)? [y/N]: ")
            if answer.strip().lower() not in ("y", "yes"):
                print("Cancelled.")
                return 0

        try:
            self.portfolio.delete(args.holding_id)
        except PortfolioError as e:
            notify(str(e), "error")
            return 1

        notify(f"Deleted holding {args.holding_id}", "success")
        return 0


@CommandRegistry.register
class PriceCommand(Command):
    """Command to set a holding's current price by hand."""

    name: str = "price"
    help: str = "Set the current price of a holding"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument("holding_id", help="ID of the holding")
        _ = parser.add_argument("price", help="New current price")

    @override
    def execute(self, args: argparse.Namespace) -> int:
        try:
            holding = self.portfolio.set_current_price(args.holding_id, args.price)
        except PortfolioError as e:
            notify(str(e), "error")
            return 1

        notify(f"{holding.ticker} current price set to {format_currency(holding.current_price)}", "success")
        return 0
