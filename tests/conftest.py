import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
import yaml

from stock_dashboard.config import AppConfig, ConfigLoader
from stock_dashboard.db import Database
from stock_dashboard.models import Holding, Transaction
from stock_dashboard.repositories.holding_repository import HoldingRepository
from stock_dashboard.repositories.settings_repository import SettingsRepository
from stock_dashboard.repositories.transaction_repository import TransactionRepository
from stock_dashboard.services.portfolio_service import PortfolioService
from stock_dashboard.store import PortfolioStore, SQLitePortfolioStore

REPO_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = REPO_ROOT / "config"
TEST_USER: str = "test-user"


@pytest.fixture(scope="session", autouse=True)
def ensure_test_environment():
    """Ensure we're using the test environment for all tests."""
    # Use os.environ directly instead of monkeypatch for session-scoped fixture
    original_env = os.environ.get("STOCK_DASHBOARD_ENV")
    os.environ["STOCK_DASHBOARD_ENV"] = "test"

    yield

    # Restore original environment variable if it existed
    if original_env is not None:
        os.environ["STOCK_DASHBOARD_ENV"] = original_env
    else:
        _ = os.environ.pop("STOCK_DASHBOARD_ENV", None)


@pytest.fixture
def app_config() -> AppConfig:
    """
    Load the AppConfig through the normal ConfigLoader mechanism using
    the actual config files.
    """
    return ConfigLoader.load_app_config("test", config_dir=CONFIG_DIR)


@pytest.fixture
def test_db():
    """Create an in-memory test database."""
    with Database(":memory:") as db:
        db.create_tables_if_not_exists()
        yield db


@pytest.fixture
def store(test_db: Database) -> SQLitePortfolioStore:
    return SQLitePortfolioStore(
        test_db,
        HoldingRepository(test_db),
        TransactionRepository(test_db),
        SettingsRepository(test_db),
    )


@pytest.fixture
def ledger(store: SQLitePortfolioStore) -> PortfolioService:
    """A ledger backed by a real in-memory SQLite store."""
    return PortfolioService(store, TEST_USER)


@pytest.fixture
def mock_store() -> MagicMock:
    """A store double that starts empty and accepts every write."""
    mock: MagicMock = MagicMock(spec=PortfolioStore)
    mock.load_snapshot.return_value = ([], [])
    mock.subscribe.return_value = MagicMock()
    return mock


@pytest.fixture
def make_holding() -> Callable[..., Holding]:
    """Factory for holdings with sensible defaults."""
    counter = iter(range(1, 10_000))

    def _make(**kwargs: Any) -> Holding:
        n = next(counter)
        defaults: dict[str, Any] = {
            "id": f"h{n}",
            "name": f"Company {n}",
            "ticker": f"TCK{n}",
            "units": 10.0,
            "avg_cost": 100.0,
            "current_price": 100.0,
            "sector": "Technology",
            "date_added": datetime(2024, 1, 1, 9, 30),
            "user_id": TEST_USER,
        }
        defaults.update(kwargs)
        return Holding(**defaults)

    return _make


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    counter = iter(range(1, 10_000))

    def _make(**kwargs: Any) -> Transaction:
        n = next(counter)
        defaults: dict[str, Any] = {
            "id": f"t{n}",
            "type": "buy",
            "stock_id": "h1",
            "ticker": "TCK1",
            "stock_name": "Company 1",
            "units": 10.0,
            "price": 100.0,
            "date": datetime(2024, 1, n % 28 + 1, 12, 0),
            "user_id": TEST_USER,
        }
        defaults.update(kwargs)
        return Transaction(**defaults)

    return _make


@pytest.fixture
def isolated_config_environment(tmp_path: Path):
    """
    Create an isolated config directory holding copies of the real config files.
    Use this when you need to modify config files for specific tests.
    Generator that yields: dict[str,Path]
    - "config_dir": test_config_dir, "temp_dir": tmp_path
    """
    test_config_dir: Path = tmp_path / "config"
    test_config_dir.mkdir()

    for config_file in CONFIG_DIR.glob("*.yaml"):
        with open(config_file, "r") as src_file:
            content: dict[str, Any] = yaml.safe_load(src_file) or {}

        # Modify paths in the config to use the temp directory
        if "export_path" in content:
            content["export_path"] = str(tmp_path / "export.json")
        if "log_file_path" in content:
            content["log_file_path"] = str(tmp_path / "logs/test.log")

        with open(test_config_dir / config_file.name, "w") as dest_file:
            yaml.dump(content, dest_file)

    yield {"config_dir": test_config_dir, "temp_dir": tmp_path}
