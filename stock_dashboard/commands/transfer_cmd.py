"""Export and import command implementations."""

import argparse
import logging
from pathlib import Path
from typing_extensions import override

from stock_dashboard.commands.base import Command, CommandRegistry
from stock_dashboard.errors import PortfolioError
from stock_dashboard.importer import export_to_json, import_from_json
from stock_dashboard.utils.notifications import notify

logger = logging.getLogger(__name__)


@CommandRegistry.register
class ExportCommand(Command):
    """Command to export holdings and transactions to JSON."""

    name: str = "export"
    help: str = "Export holdings and transactions to a JSON file"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument(
            "file", nargs="?", type=Path, help="Output file (defaults to the configured export path)"
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        path: Path = args.file or self.config.export_path
        data = self.portfolio.export_data()
        try:
            _ = export_to_json(data, path)
        except OSError as e:
            logger.error(f"Failed to export portfolio to {path}: {e}")
            notify(f"Failed to export data: {e}", "error")
            return 1

        notify(
            f"Exported {len(data['stocks'])} holdings and {len(data['transactions'])} "
            f"transactions to {path}",
            "success",
        )
        return 0


@CommandRegistry.register
class ImportCommand(Command):
    """Command to import holdings and transactions from a JSON export."""

    name: str = "import"
    help: str = "Import holdings and transactions from a JSON export"

    @override
    @classmethod
    def setup_parser(cls, subparser) -> None:
        parser: argparse.ArgumentParser = subparser.add_parser(cls.name, help=cls.help)
        _ = parser.add_argument("file", type=Path, help="JSON file to import")
        _ = parser.add_argument(
            "--replace",
            action="store_true",
            help="Replace all existing holdings and transactions instead of merging",
        )

    @override
    def execute(self, args: argparse.Namespace) -> int:
        try:
            data = import_from_json(args.file)
            holdings, transactions = self.portfolio.import_data(data, replace_existing=args.replace)
        except PortfolioError as e:
            notify(f"Error importing data: {e}", "error")
            return 1

        notify(f"Imported {holdings} holdings and {transactions} transactions", "success")
        return 0
