import json
import logging
from pathlib import Path
from typing import Any

from stock_dashboard.errors import ImportFormatError

logger: logging.Logger = logging.getLogger(__name__)


def validate_import_data(data: Any) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """
    Check that parsed JSON has the shape of a portfolio export.

    Returns:
        (stock records, transaction records); transactions default to an empty list

    Raises:
        ImportFormatError: If `stocks` is missing or not a list, `transactions` is
            present but not a list, or any record is not an object
    """
    if not isinstance(data, dict):
        raise ImportFormatError("Invalid import file format: expected a JSON object")

    stocks = data.get("stocks")
    if not isinstance(stocks, list):
        raise ImportFormatError("Invalid import file format: 'stocks' must be a list")

    transactions = data.get("transactions", [])
    if transactions is None:
        transactions = []
    if not isinstance(transactions, list):
        raise ImportFormatError("Invalid import file format: 'transactions' must be a list")

    for section, records in (("stocks", stocks), ("transactions", transactions)):
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise ImportFormatError(
                    f"Invalid import file format: {section}[{index}] is not an object"
                )

    return stocks, transactions


def import_from_json(path: Path) -> dict[str, Any]:
    """
    Read and validate an export file.

    Raises:
        ImportFormatError: If the file cannot be read, is not JSON, or has the wrong shape
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Invalid JSON in {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Could not read import file {path}: {e}") from e

    _ = validate_import_data(data)
    logger.info(
        f"Read {len(data['stocks'])} stocks and {len(data.get('transactions') or [])} "
        f"transactions from {path}"
    )
    return data


def export_to_json(data: dict[str, Any], path: Path) -> Path:
    """Write export data as indented JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Exported portfolio to {path}")
    return path
