"""Utilities for working with argument parsers."""

from dataclasses import fields
from typing import Any, ClassVar, get_origin, get_type_hints

from stock_dashboard.config import AppConfig


def _type_name(hint: Any) -> str:
    """Readable metavar for a field type, e.g. Path -> 'Path', int | None -> 'int'."""
    return getattr(hint, "__name__", None) or str(hint).split("|")[0].strip()


def add_config_options(parser: Any, config_class: type = AppConfig) -> None:
    """
    Dynamically add configuration options to a parser based on a dataclass.

    Every public field becomes an optional `--field-name` flag whose default is None,
    so only values the user actually passed end up as config overrides.

    Args:
        parser: The argument parser (or argument group) to add options to
        config_class: The dataclass to extract fields from (default: AppConfig)
    """
    type_hints: dict[str, Any] = get_type_hints(config_class, include_extras=False)

    for field in fields(config_class):
        hint: Any = type_hints.get(field.name, field.type)

        # Skip private fields and ClassVars
        if field.name.startswith("_") or get_origin(hint) is ClassVar:
            continue

        arg_name: str = f"--{field.name.replace('_', '-')}"  # eg. db_path -> --db-path
        help_text: str = f"Override {field.name} configuration value"

        if hint is bool:
            # Booleans are flags; None default keeps them out of the overrides
            _ = parser.add_argument(arg_name, action="store_true", default=None, help=help_text)
            continue

        # For all other types, add a standard argument
        _ = parser.add_argument(
            arg_name,
            type=str,  # Accept all as strings initially, convert later
            default=None,  # So we know if user passed it
            metavar=_type_name(hint),
            help=help_text,
        )
