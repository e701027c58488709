"""Buy and sell command implementations."""

import argparse
import logging
from typing_extensions import override

from stock_dashboard.commands.base import Command, CommandRegistry, parse_datetime_arg
from stock_dashboard.errors import PortfolioError
from stock_dashboard.utils.formatting import format_currency
from stock_dashboard.utils.notifications import notify

logger = logging.getLogger(__name__)


def _add_trade_arguments(parser: argparse.ArgumentParser) -> None:
    _ = parser.add_argument("holding_id", help="ID of the holding")
    _ = parser.add_argument("--units", required=True, help="Number of units")
    _ = parser.add_argument("--price", required=True, help="Price per unit")
    _ = parser.add_argument("--date", type=parse_datetime_arg, help="Trade date (YYYY-MM-DD)")
    _ = parser.add_argument("--notes", default="", help="Notes for the transaction")


@CommandRegistry.register
class BuyCommand(Command):
    """Command to buy more units of an existing holding."""

    name: str = "buy"
    help: str = "Buy more units of a holding"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _add_trade_arguments(parser)

    @override
    def execute(self, args: argparse.Namespace) -> int:
        try:
            holding = self.portfolio.buy_more(
                args.holding_id, args.units, args.price, args.date, args.notes
            )
        except PortfolioError as e:
            notify(str(e), "error")
            return 1

        notify(
            f"Bought {float(args.units):g} units of {holding.ticker}. "
            f"Now {holding.units:g} units at {format_currency(holding.avg_cost)} average cost",
            "success",
        )
        return 0


@CommandRegistry.register
class SellCommand(Command):
    """Command to sell units of a holding."""

    name: str = "sell"
    help: str = "Sell units of a holding"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _add_trade_arguments(parser)

    @override
    def execute(self, args: argparse.Namespace) -> int:
        try:
            result = self.portfolio.sell(
                args.holding_id, args.units, args.price, args.date, args.notes
            )
        except PortfolioError as e:
            notify(str(e), "error")
            return 1

        transaction = result.transaction
        gain = transaction.gain_or_loss or 0.0
        outcome = "gain" if gain >= 0 else "loss"
        if result.fully_sold:
            notify(
                f"Sold all {transaction.units:g} units of {transaction.ticker} "
                f"for a {outcome} of {format_currency(abs(gain))}. Position closed",
                "success",
            )
        else:
            assert result.holding is not None
            notify(
                f"Sold {transaction.units:g} units of {transaction.ticker} for a {outcome} of "
                f"{format_currency(abs(gain))}. {result.holding.units:g} units remaining",
                "success",
            )
        return 0
