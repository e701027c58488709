# config.py
import argparse
import logging
import os
from dataclasses import MISSING, dataclass, fields
from pathlib import Path
from typing import Any, get_type_hints

import yaml

from stock_dashboard.utils.type_utils import convert_type


logger: logging.Logger = logging.getLogger(__name__)

# CLI arguments that are not AppConfig fields
_NON_CONFIG_ARGS: frozenset[str] = frozenset({"command", "env", "config_file"})


def get_env() -> str:
    # Try to get ENV from environment variable, default to 'prod'
    is_test_environment: bool = bool(os.getenv("PYTEST_CURRENT_TEST"))
    env: str = "test" if is_test_environment else os.getenv("STOCK_DASHBOARD_ENV", "prod").lower()
    logger.debug(f"Using environment: {env}")
    return env


@dataclass
class AppConfig:
    db_path: Path
    export_path: Path
    log_config_path: Path
    log_file_path: Path
    log_level: str
    user_id: str
    quote_cache_seconds: int
    quote_batch_size: int
    quote_batch_delay_seconds: float
    dividend_lookback_days: int = 365


class ConfigLoader:
    """Load and manage application configuration from multiple sources."""

    @staticmethod
    def _find_config_directory() -> Path:
        """Find a valid configuration directory from several possible locations."""
        possible_config_dirs: list[Path] = [
            Path("config"),  # Current directory
            Path.home() / ".stock-dashboard" / "config",  # User's home directory
            Path("/etc/stock-dashboard/config"),  # System-wide config
            Path(__file__).parent.parent / "config",  # Package directory
        ]

        # Use the first existing directory, or fall back to 'config'
        for directory in possible_config_dirs:
            if directory.exists():
                logger.debug(f"Using config directory: {directory}")
                return directory

        # If no config directory exists, return the default
        logger.warning("No config directory found, using 'config'")
        return Path("config")

    @staticmethod
    def _load_merged_yaml(
        env: str, config_dir: Path | None = None, file: Path | None = None
    ) -> dict[str, Any]:
        """Get appropriate config files as a dict, merging nested items."""
        if config_dir is None:
            config_dir = ConfigLoader._find_config_directory()

        def load_yaml(path: Path) -> dict[str, Any]:
            if path.exists():
                with open(path, "r") as f:
                    return yaml.safe_load(f) or {}
            else:
                logger.debug(f"Config file not found: {path}")
                return {}

        base_config: dict[str, Any] = load_yaml(config_dir / "config.base.yaml")
        env_config: dict[str, Any] = load_yaml(config_dir / f"config.{env}.yaml")

        # If neither config file exists, use default minimal config
        if not base_config and not env_config:
            logger.warning("No config files found. Using built-in defaults.")
            merged_config: dict[str, Any] = ConfigLoader._get_default_config()
        else:
            merged_config = ConfigLoader._deep_merge(base_config, env_config)

        if file:
            if not file.exists():
                raise FileNotFoundError(f"Config file not found: {file}")
            merged_config = ConfigLoader._deep_merge(merged_config, load_yaml(file))

        return merged_config

    @staticmethod
    def _get_default_config() -> dict[str, Any]:
        """Return sensible default configuration values if no config files exist."""
        return {
            "db_path": "stock_dashboard.db",
            "export_path": "portfolio_export.json",
            "log_config_path": "config/logging_config.yaml",
            "log_file_path": "logs/stock_dashboard.log",
            "log_level": "INFO",
            "user_id": "local",
            "quote_cache_seconds": 60,
            "quote_batch_size": 5,
            "quote_batch_delay_seconds": 1.0,
            "dividend_lookback_days": 365,
        }

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge two dictionaries. Values in `override` take precedence."""
        result: dict[str, Any] = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigLoader._deep_merge(result[key], value)
            else:
                result[key] = value
        return result

    @staticmethod
    def _dict_to_config(data: dict[str, Any], config_class: type[AppConfig]) -> AppConfig:
        """Build AppConfig class object from input dict, validating and coercing data to fit the defined parameter types."""
        type_hints: dict[str, Any] = get_type_hints(config_class)
        init_args: dict[str, Any] = {}

        for field in fields(config_class):
            name: str = field.name
            expected_type = type_hints.get(name, Any)
            value = data.get(name, MISSING)

            if value is MISSING:
                if field.default is not MISSING:
                    value = field.default
                elif field.default_factory is not MISSING:
                    value = field.default_factory()
                else:
                    raise ValueError(f"Missing required config value: '{name}'")

            try:
                init_args[name] = convert_type(value, expected_type)
            except Exception as e:
                raise TypeError(
                    f"Invalid type for '{name}': expected {expected_type}, got {type(value)}. Error: {e}"
                ) from e

        config: AppConfig = config_class(**init_args)
        ConfigLoader._validate(config)
        return config

    @staticmethod
    def _validate(config: AppConfig) -> None:
        """Range checks that type coercion cannot express."""
        if config.quote_batch_size < 1:
            raise ValueError(f"quote_batch_size must be at least 1, got {config.quote_batch_size}")
        if config.quote_cache_seconds < 0:
            raise ValueError("quote_cache_seconds cannot be negative")
        if config.quote_batch_delay_seconds < 0:
            raise ValueError("quote_batch_delay_seconds cannot be negative")
        if not config.user_id:
            raise ValueError("user_id cannot be empty")

    @staticmethod
    def load_app_config(
        env: str,
        overrides: dict[str, Any] | None = None,
        config_file: Path | None = None,
        config_dir: Path | None = None,
    ) -> AppConfig:
        """
        Builds an AppConfig object with smart environment detection.

        The configuration is loaded in this order of precedence:
        1. Default built-in values
        2. Base config file (config.base.yaml)
        3. Environment-specific config file (config.{env}.yaml)
        4. Custom config file (if specified)
        5. CLI argument overrides

        For development purposes only, environment can be selected with STOCK_DASHBOARD_ENV variable.

        Args:
            env: Environment name (prod, dev, test)
            overrides: Optional dictionary of configuration overrides (typically from CLI)
            config_file: Optional path to a specific config file to use
            config_dir: Optional directory holding config.*.yaml (searched for when omitted)

        Returns:
            An AppConfig object with the merged configuration
        """
        if config_dir is None:
            config_dir = ConfigLoader._find_config_directory()

        merged_config: dict[str, Any] = ConfigLoader._load_merged_yaml(
            env, config_dir=config_dir, file=config_file
        )

        # If provided CLI overrides, merge with config
        if overrides:
            merged_config = ConfigLoader._deep_merge(merged_config, overrides)

        config: AppConfig = ConfigLoader._dict_to_config(merged_config, AppConfig)

        # A relative logging config that is not in the working directory is looked up beside the config files
        log_config: Path = config.log_config_path
        if not log_config.is_absolute() and not log_config.exists():
            candidate: Path = config_dir / log_config.name
            if candidate.exists():
                config.log_config_path = candidate
        return config

    @staticmethod
    def args_to_overrides(args: argparse.Namespace) -> dict[str, Any]:
        """Convert argparse Namespace to a dictionary of config overrides."""
        config_fields: set[str] = {field.name for field in fields(AppConfig)}
        return {
            k: v
            for k, v in vars(args).items()
            if v is not None and k in config_fields and k not in _NON_CONFIG_ARGS
        }
