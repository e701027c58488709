"""Formatting and small helper functions shared by the display and chart layers."""

import math
import time
import uuid
from datetime import date, datetime
from typing import Any


def _to_number(value: Any) -> float:
    """Coerce a value to float, treating anything unparseable as zero."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
    return 0.0 if math.isnan(number) else number


def format_number(value: Any, decimals: int = 2) -> str:
    """Format a number with thousands separators, e.g. 1234.5 -> '1,234.50'."""
    return f"{_to_number(value):,.{decimals}f}"


def format_currency(value: Any, currency: str = "$") -> str:
    """Format a number as currency, e.g. -1234.5 -> '$-1,234.50'."""
    return currency + format_number(value, 2)


def format_percentage(value: Any, include_sign: bool = True) -> str:
    """Format a number as a percentage, prefixing '+' for positive values."""
    number: float = _to_number(value)
    sign: str = "+" if include_sign and number > 0 else ""
    return f"{sign}{number:.2f}%"


def format_date(value: datetime | date | str | None, style: str = "short") -> str:
    """
    Format a date in a readable form.

    Args:
        value: A date, datetime or ISO string
        style: 'short' (2024-03-01), 'medium' (2024-03-01 14:05) or 'long' (Friday, March 01, 2024)

    Returns:
        The formatted date, or an empty string when the value is missing or invalid
    """
    if not value:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            return ""

    if style == "medium" and isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    if style == "long":
        return value.strftime("%A, %B %d, %Y")
    return value.strftime("%Y-%m-%d")


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def calculate_holding_period(start: datetime | str | None, end: datetime | None = None) -> str:
    """Describe the time between two dates as days, months or years and months."""
    if not start:
        return ""
    if isinstance(start, str):
        try:
            start = datetime.fromisoformat(start)
        except ValueError:
            return ""
    end = end or datetime.now(start.tzinfo)

    diff_days: int = abs((end - start).days)
    if diff_days < 30:
        return _plural(diff_days, "day")
    if diff_days < 365:
        return _plural(diff_days // 30, "month")

    years: int = diff_days // 365
    remaining_months: int = (diff_days % 365) // 30
    if remaining_months == 0:
        return _plural(years, "year")
    return f"{_plural(years, 'year')} {_plural(remaining_months, 'month')}"


def calculate_range_position(current: float, low: float, high: float) -> float:
    """Position of the current price within its 52-week range, clamped to 0-100."""
    if low == high:
        return 50.0
    return min(100.0, max(0.0, (current - low) / (high - low) * 100))


def generate_id() -> str:
    """Generate an opaque unique ID, e.g. 'id_3f9a1c2_1718000000000'."""
    return f"id_{uuid.uuid4().hex[:7]}_{int(time.time() * 1000)}"


def today_formatted() -> str:
    """Today's date as YYYY-MM-DD."""
    return date.today().isoformat()


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives (2.5 -> 3)."""
    return math.floor(value + 0.5)
