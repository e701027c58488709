"""
Stock Dashboard CLI

A command-line dashboard for tracking stock holdings, buy/sell transactions,
dividends and portfolio performance.
"""

import argparse
import importlib
import logging
import pkgutil
import sqlite3
import sys
from pathlib import Path
from typing import Any

from stock_dashboard.commands.base import Command, CommandRegistry
from stock_dashboard.config import AppConfig, ConfigLoader, get_env
from stock_dashboard.container import ServiceContainer
from stock_dashboard.db import Database
from stock_dashboard.errors import PortfolioError
from stock_dashboard.utils.notifications import notify
from stock_dashboard.utils.parser_utils import add_config_options
from stock_dashboard.utils.setup_logging import setup_logging

logger = logging.getLogger(__name__)

EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def load_commands() -> None:
    """
    Dynamically import all command modules to register commands.

    This function finds and imports all modules in the commands package
    to ensure all command classes are registered with the CommandRegistry.
    """
    import stock_dashboard.commands.base

    for _, name, _ in pkgutil.iter_modules(stock_dashboard.commands.__path__):
        if name != "base":  # Skip base module as we already imported it
            importlib.import_module(f"stock_dashboard.commands.{name}")

    logger.debug(f"Loaded {len(CommandRegistry.get_commands())} commands")


def create_parser(env: str) -> argparse.ArgumentParser:
    """Create the argument parser with all commands and options."""
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Stock Dashboard CLI",
        epilog="Use 'stock-dashboard COMMAND --help' for more information on a command.",
    )

    # Add global options
    global_group = parser.add_argument_group("Global Options")

    # For development/testing only
    if env == "test" or env == "dev":
        _ = global_group.add_argument(
            "--env",
            help="Environment to use (dev, test, prod). Default: prod",
            choices=["dev", "test", "prod"],
        )

    # Add configuration options (these apply to all commands), e.g. --user-id
    add_config_options(global_group)

    _ = global_group.add_argument(
        "--config-file", help="Path to specific configuration file to use", type=str
    )

    # Create subparsers for different commands
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Register all command parsers
    for command_class in CommandRegistry.get_commands().values():
        command_class.setup_parser(subparsers)

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the stock-dashboard CLI application.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    # Load all command modules
    load_commands()

    env = get_env()

    # Parse command line arguments
    parser: argparse.ArgumentParser = create_parser(env)
    args: argparse.Namespace = parser.parse_args(argv)

    # Check if a command was specified
    if not args.command:
        parser.print_help()
        return 0

    # Handle environment override from CLI (development only)
    if (env == "dev" or env == "test") and getattr(args, "env", None):
        env = args.env

    # Convert args to config overrides
    overrides: dict[str, Any] = ConfigLoader.args_to_overrides(args)

    # Handle custom config file
    config_file: Path | None = Path(args.config_file) if args.config_file else None

    # Load the configuration
    try:
        config: AppConfig = ConfigLoader.load_app_config(
            overrides=overrides, env=env, config_file=config_file
        )
    except Exception as e:
        # Print error and exit if config loading fails
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_ERROR

    # Set up logging
    setup_logging(config.log_config_path, config.log_level, config.log_file_path)
    logger.debug(f"Running '{args.command}' as user {config.user_id} ({env})")

    return run_command(config, args)


def run_command(config: AppConfig, args: argparse.Namespace) -> int:
    """
    Open the portfolio database and run the selected command against it.

    Errors a command does not handle itself are reported as a single
    notification line and turned into an exit code.

    Returns:
        The command's exit code, EXIT_ERROR for ledger or database failures,
        or EXIT_INTERRUPTED when the user aborts with Ctrl-C
    """
    command_classes: dict[str, type[Command]] = CommandRegistry.get_commands()
    command_class: type[Command] | None = command_classes.get(args.command)
    if command_class is None:
        notify(f"Unknown command: {args.command}", "error")
        return EXIT_ERROR

    try:
        with Database(config.db_path) as db:
            db.create_tables_if_not_exists()
            container: ServiceContainer = ServiceContainer(config, db)
            command: Command = command_class(config, db, container)
            return command.execute(args)
    except PortfolioError as e:
        notify(str(e), "error")
        return EXIT_ERROR
    except sqlite3.Error as e:
        logger.error(f"Database error in '{args.command}': {e}", exc_info=True)
        notify(f"Could not use the portfolio database at {config.db_path}: {e}", "error")
        return EXIT_ERROR
    except KeyboardInterrupt:
        notify("Interrupted, no further changes were made", "warning")
        return EXIT_INTERRUPTED
    except Exception as e:
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        notify(f"Unexpected error: {e}", "error")
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
