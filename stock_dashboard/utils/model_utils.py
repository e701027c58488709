import re
import types
from dataclasses import MISSING, fields
from datetime import date, datetime
from sqlite3 import Row
from typing import Any, Mapping, TypeVar, Union, get_args, get_origin, get_type_hints

# Generic type for any model class
T = TypeVar("T")

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z])(?=[A-Z0-9])|(?<=[0-9])(?=[A-Z])")


def to_camel(name: str) -> str:
    """avg_cost -> avgCost, low_52_week -> low52Week"""
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_snake(name: str) -> str:
    """avgCost -> avg_cost, low52Week -> low_52_week"""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _unwrap_optional(hint: Any) -> Any:
    """Return X for X | None, otherwise the hint unchanged."""
    if get_origin(hint) in (Union, types.UnionType):
        members = [arg for arg in get_args(hint) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return hint


def _parse_value(value: Any, hint: Any) -> Any:
    hint = _unwrap_optional(hint)
    if value is None:
        return None
    if hint is datetime and isinstance(value, str):
        return datetime.fromisoformat(value)
    if hint is datetime and not isinstance(value, datetime):
        raise TypeError(f"Expected an ISO datetime, got {value!r}")
    if hint is date and isinstance(value, str):
        return date.fromisoformat(value[:10])
    if hint is bool and not isinstance(value, bool):
        return bool(value)
    if hint is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


def _serialise_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class ModelFactory:
    """Factory class to convert domain models to and from stored rows and export records"""

    @staticmethod
    def create_from_mapping(model_class: type[T], data: Mapping[str, Any]) -> T:
        """
        Create a model instance from a snake_case mapping.

        Keys the model does not define are ignored. Date and datetime fields stored
        as ISO strings are parsed according to the model's type hints.
        """
        type_hints: dict[str, Any] = get_type_hints(model_class)
        init_args: dict[str, Any] = {}
        for model_field in fields(model_class):  # type: ignore[arg-type]
            if model_field.name not in data:
                if model_field.default is MISSING and model_field.default_factory is MISSING:
                    raise ValueError(
                        f"Missing required field '{model_field.name}' for {model_class.__name__}"
                    )
                continue
            init_args[model_field.name] = _parse_value(
                data[model_field.name], type_hints.get(model_field.name)
            )
        return model_class(**init_args)

    @staticmethod
    def create_from_row(model_class: type[T], row: Row) -> T:
        """Create a model instance from a database row"""
        return ModelFactory.create_from_mapping(model_class, dict(row))

    @staticmethod
    def create_list_from_rows(model_class: type[T], rows: list[Row]) -> list[T]:
        """Create a list of model instances from database rows"""
        return [ModelFactory.create_from_row(model_class, row) for row in rows]

    @staticmethod
    def create_from_record(model_class: type[T], record: Mapping[str, Any]) -> T:
        """Create a model instance from a camelCase export record"""
        return ModelFactory.create_from_mapping(
            model_class, {to_snake(key): value for key, value in record.items()}
        )

    @staticmethod
    def to_row(model: Any) -> dict[str, Any]:
        """Flatten a model into named SQL parameters"""
        row: dict[str, Any] = {}
        for model_field in fields(model):
            value = getattr(model, model_field.name)
            if isinstance(value, bool):
                value = int(value)
            row[model_field.name] = _serialise_value(value)
        return row

    @staticmethod
    def to_record(model: Any) -> dict[str, Any]:
        """Convert a model into a camelCase, JSON-safe export record"""
        return {
            to_camel(model_field.name): _serialise_value(getattr(model, model_field.name))
            for model_field in fields(model)
        }
