"""Interactive command implementation."""

import argparse
import logging
from pathlib import Path
from typing import Callable
from typing_extensions import override

from stock_dashboard.commands.base import Command, CommandRegistry
from stock_dashboard.models import PortfolioSnapshot
from stock_dashboard.utils.formatting import format_currency, format_percentage

logger = logging.getLogger(__name__)


def _ask(prompt: str, default: str | None = None) -> str | None:
    suffix = f" [{default}]" if default else ""
    answer = input(f"{prompt}{suffix}: ").strip()
    return answer or default


def _print_totals(snapshot: PortfolioSnapshot) -> None:
    metrics = snapshot.metrics
    print(
        f"\nPortfolio value: {format_currency(metrics.total_value)} "
        f"({format_percentage(metrics.total_gain_loss_percent)})"
    )


@CommandRegistry.register
class InteractiveCommand(Command):
    """Command to launch interactive menu mode."""

    name: str = "interactive"
    help: str = "Launch interactive menu mode"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        """Configure the argument parser for the interactive command."""
        _ = subparser.add_parser(cls.name, help=cls.help)
        # No additional arguments needed

    @override
    def execute(self, args: argparse.Namespace) -> int:
        """Execute the interactive command."""
        unsubscribe = self.portfolio.subscribe(_print_totals)
        try:
            return self._run_interactive_mode()
        finally:
            unsubscribe()

    def _run_interactive_mode(self) -> int:
        """Run the application in interactive menu mode."""
        # Import other command classes
        from stock_dashboard.commands.add_cmd import AddCommand
        from stock_dashboard.commands.refresh_cmd import RefreshCommand
        from stock_dashboard.commands.report_cmd import ReportCommand
        from stock_dashboard.commands.trade_cmd import BuyCommand, SellCommand
        from stock_dashboard.commands.transfer_cmd import ExportCommand, ImportCommand

        # Create command instances
        add_cmd: Command = AddCommand(self.config, self.db, self.container)
        buy_cmd: Command = BuyCommand(self.config, self.db, self.container)
        sell_cmd: Command = SellCommand(self.config, self.db, self.container)
        refresh_cmd: Command = RefreshCommand(self.config, self.db, self.container)
        report_cmd: Command = ReportCommand(self.config, self.db, self.container)
        export_cmd: Command = ExportCommand(self.config, self.db, self.container)
        import_cmd: Command = ImportCommand(self.config, self.db, self.container)

        def report(report_type: str) -> int:
            return report_cmd.execute(
                argparse.Namespace(type=report_type, limit=20, month=None, refresh=False, output=None)
            )

        def add() -> int:
            return add_cmd.execute(
                argparse.Namespace(
                    ticker=_ask("Ticker") or "",
                    name=_ask("Company name"),
                    units=_ask("Units"),
                    price=_ask("Purchase price"),
                    current_price=_ask("Current price (blank to fetch)"),
                    sector=_ask("Sector", "Other"),
                    low_52_week=None,
                    high_52_week=None,
                    date=None,
                    notes=_ask("Notes") or "",
                    offline=False,
                )
            )

        def trade(command: Command) -> int:
            report("holdings")
            return command.execute(
                argparse.Namespace(
                    holding_id=_ask("Holding ID") or "",
                    units=_ask("Units"),
                    price=_ask("Price"),
                    date=None,
                    notes=_ask("Notes") or "",
                )
            )

        def import_file() -> int:
            path = _ask("File to import", str(self.config.export_path)) or ""
            replace = (_ask("Replace existing data? (y/N)", "n") or "n").lower().startswith("y")
            return import_cmd.execute(argparse.Namespace(file=Path(path), replace=replace))

        # Dictionary mapping menu options to handler functions
        handlers: dict[str, Callable[[], int]] = {
            "1": lambda: report("summary"),
            "2": lambda: report("holdings"),
            "3": lambda: report("transactions"),
            "4": add,
            "5": lambda: trade(buy_cmd),
            "6": lambda: trade(sell_cmd),
            "7": lambda: refresh_cmd.execute(argparse.Namespace(type="prices")),
            "8": lambda: report("dividends"),
            "9": lambda: report("recommendations"),
            "10": lambda: export_cmd.execute(argparse.Namespace(file=None)),
            "11": import_file,
        }

        while True:
            # Display menu
            print("\n=== Stock Dashboard Menu ===")
            print("1. Portfolio Summary")
            print("2. Holdings")
            print("3. Transactions")
            print("4. Add Stock")
            print("5. Buy More")
            print("6. Sell")
            print("7. Refresh Prices")
            print("8. Dividends")
            print("9. Recommendations")
            print("10. Export Data")
            print("11. Import Data")
            print("0. Exit")

            # Get user choice
            choice: str = input("\nEnter your choice (0-11): ").strip()

            if choice == "0":
                print("Exiting Stock Dashboard. Goodbye!")
                break

            # Execute handler if valid choice
            handler = handlers.get(choice)
            if handler:
                try:
                    exit_code = handler()
                    if exit_code != 0:
                        print(f"\nCommand completed with exit code {exit_code}")
                except Exception as e:
                    print(f"\nError: {e}")
                    logger.error(f"Error in interactive mode: {e}", exc_info=True)
            else:
                print("Invalid choice. Please try again.")

        return 0
