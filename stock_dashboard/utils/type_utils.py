import math
import types
from pathlib import Path
from typing import Any, Union, get_args, get_origin


def convert_type(value: Any, expected_type: type | types.UnionType) -> Any:
    """Convert a config value to the expected type with fallback handling and clear errors."""

    if value is None:
        return None

    origin = get_origin(expected_type)

    # Handle Union or `|` (e.g., int | None), trying each member in order
    if origin is Union or origin is types.UnionType:
        for subtype in get_args(expected_type):
            try:
                return convert_type(value, subtype)
            except Exception:
                continue
        raise ValueError(f"Cannot convert {value!r} to any of {get_args(expected_type)}")

    if expected_type is Path:
        return Path(value).expanduser()

    if expected_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered: str = value.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
        raise ValueError(f"Cannot convert {value!r} to bool")

    # Counts and delays must be real numbers, "nan" and "inf" are not accepted
    if expected_type is float or expected_type is int:
        if isinstance(value, bool):
            raise ValueError(f"Cannot convert {value!r} to {expected_type.__name__}")
        try:
            number = expected_type(value)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Invalid value for config field: expected {expected_type.__name__}, "
                f"got {value!r} ({type(value).__name__})"
            ) from e
        if isinstance(number, float) and not math.isfinite(number):
            raise ValueError(f"Expected a finite number, got {value!r}")
        return number

    # Default fallback: attempt direct type cast
    if isinstance(expected_type, type):
        try:
            return expected_type(value)
        except (TypeError, ValueError) as e:
            raise ValueError(
                f"Invalid value for config field: expected {expected_type.__name__}, "
                f"got {value!r} ({type(value).__name__})"
            ) from e

    raise TypeError(f"Expected a callable type, got {expected_type!r}")
