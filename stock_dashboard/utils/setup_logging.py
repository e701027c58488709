from logging import Logger
import logging.config
from pathlib import Path
import sys
from typing import Any

import yaml

PACKAGE_LOGGER: str = "stock_dashboard"


def _redirect_file_handlers(config: dict[str, Any], log_file_path: Path) -> None:
    """Point every FileHandler in the dictConfig at the configured log file."""
    for handler in config.get("handlers", {}).values():
        if handler.get("class", "").endswith("FileHandler"):
            handler["filename"] = str(log_file_path)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)


def setup_logging(config_path: Path, log_level: str, log_file_path: Path | None = None) -> None:
    try:
        # Load default logging configuration from supplied Path to YAML file
        with open(file=config_path, mode="r") as f:
            config = yaml.safe_load(f)

        if log_file_path is not None:
            _redirect_file_handlers(config, log_file_path)

        # Apply default config
        logging.config.dictConfig(config)

        # Override default log_level from AppConfig
        override_level_str: str = log_level.upper()

        # Convert string level to integer level. logging module constants are integers.
        level_map: dict[str, int] = {
            "CRITICAL": logging.CRITICAL,
            "ERROR": logging.ERROR,
            "WARNING": logging.WARNING,
            "INFO": logging.INFO,
            "DEBUG": logging.DEBUG,
            "NOTSET": logging.NOTSET,
        }
        override_level: int | None = level_map.get(override_level_str)

        if override_level is None:
            logging.warning(
                f"Invalid log level '{log_level}' from AppConfig. Using default levels from YAML."
            )
            return

        package_logger: Logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.setLevel(override_level)
        logging.info(f"Package logger '{PACKAGE_LOGGER}' level overridden to {override_level_str}")

    except FileNotFoundError:
        print(f"Error: Logging config file not found at {config_path}", file=sys.stderr)
        # Fallback: Configure a basic console logger so subsequent errors are seen
        logging.basicConfig(level=logging.INFO)
        logging.error(f"Failed to load logging config from {config_path}")
    except (yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
        print(f"Error: Invalid logging config in {config_path}: {e}", file=sys.stderr)
        logging.basicConfig(level=logging.INFO)
        logging.error(f"Invalid logging config in {config_path}: {e}")
    except Exception as e:
        print(f"An unexpected error occurred during logging setup: {e}", file=sys.stderr)
        # Fallback: Configure a basic console logger so subsequent errors are seen
        logging.basicConfig(level=logging.INFO)
        logging.error(f"An unexpected error occurred during logging setup: {e}")
