import json

import pytest

from stock_dashboard.errors import ImportFormatError
from stock_dashboard.importer import export_to_json, import_from_json, validate_import_data


def test_validate_defaults_missing_transactions():
    stocks, transactions = validate_import_data({"stocks": [{"id": "a"}]})

    assert stocks == [{"id": "a"}]
    assert transactions == []


def test_validate_accepts_null_transactions():
    assert validate_import_data({"stocks": [], "transactions": None}) == ([], [])


@pytest.mark.parametrize(
    "data, message",
    [
        ("stocks", "expected a JSON object"),
        ({}, "'stocks' must be a list"),
        ({"stocks": [], "transactions": {}}, "'transactions' must be a list"),
        ({"stocks": [1]}, r"stocks\[0\] is not an object"),
        ({"stocks": [], "transactions": [{}, "x"]}, r"transactions\[1\] is not an object"),
    ],
)
def test_validate_rejects_bad_shapes(data, message):
    with pytest.raises(ImportFormatError, match=message):
        validate_import_data(data)


def test_export_then_read(tmp_path):
    data = {"stocks": [{"id": "a", "ticker": "AAPL"}], "transactions": []}
    path = tmp_path / "exports" / "portfolio.json"

    written = export_to_json(data, path)

    assert written == path
    assert import_from_json(path) == data
    # Indented for humans
    assert path.read_text().startswith('{\n  "stocks"')


def test_import_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    with pytest.raises(ImportFormatError, match="Invalid JSON"):
        import_from_json(path)


def test_import_missing_file(tmp_path):
    with pytest.raises(ImportFormatError, match="Could not read"):
        import_from_json(tmp_path / "missing.json")


def test_import_wrong_shape(tmp_path):
    path = tmp_path / "list.json"
    path.write_text(json.dumps([{"id": "a"}]))

    with pytest.raises(ImportFormatError):
        import_from_json(path)
