import argparse
from pathlib import Path

import pytest
import yaml

from stock_dashboard.config import AppConfig, ConfigLoader


def _edit_test_config(config_dir: Path, **changes) -> None:
    test_config_path = config_dir / "config.test.yaml"
    with open(test_config_path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    for key, value in changes.items():
        if value is None:
            config_data.pop(key, None)
        else:
            config_data[key] = value

    with open(test_config_path, "w") as f:
        yaml.dump(config_data, f)


def test_load_app_config(app_config):
    """Test that config is properly loaded from actual files."""
    assert isinstance(app_config, AppConfig)
    assert app_config.log_level == "DEBUG"
    assert app_config.user_id == "test-user"
    assert app_config.db_path == Path(":memory:")
    assert app_config.quote_cache_seconds == 60
    assert app_config.quote_batch_size == 5
    assert app_config.quote_batch_delay_seconds == 0.0
    assert app_config.dividend_lookback_days == 365


def test_isolated_config_modifications(isolated_config_environment):
    """Test with modified config files."""
    config_dir = isolated_config_environment["config_dir"]
    _edit_test_config(config_dir, log_level="ERROR", quote_cache_seconds=5)

    config: AppConfig = ConfigLoader.load_app_config("test", config_dir=config_dir)

    assert config.log_level == "ERROR"
    assert config.quote_cache_seconds == 5
    # Values only present in the base file still apply
    assert config.quote_batch_size == 5


def test_config_with_cli_overrides(isolated_config_environment):
    """Test that CLI arguments properly override config values."""
    overrides: dict[str, str] = {"log_level": "CRITICAL", "quote_batch_size": "10"}

    config: AppConfig = ConfigLoader.load_app_config(
        "test", overrides=overrides, config_dir=isolated_config_environment["config_dir"]
    )

    assert config.log_level == "CRITICAL"
    assert config.quote_batch_size == 10


def test_custom_config_file_takes_precedence(isolated_config_environment):
    custom = isolated_config_environment["temp_dir"] / "custom.yaml"
    with open(custom, "w") as f:
        yaml.dump({"user_id": "alice"}, f)

    config = ConfigLoader.load_app_config(
        "test", config_file=custom, config_dir=isolated_config_environment["config_dir"]
    )

    assert config.user_id == "alice"


def test_missing_custom_config_file(isolated_config_environment):
    with pytest.raises(FileNotFoundError):
        _ = ConfigLoader.load_app_config(
            "test",
            config_file=Path("does-not-exist.yaml"),
            config_dir=isolated_config_environment["config_dir"],
        )


def test_missing_config_files_use_defaults(tmp_path):
    config = ConfigLoader.load_app_config("test", config_dir=tmp_path)

    assert config.user_id == "local"
    assert config.quote_batch_size == 5


def test_missing_required_config(isolated_config_environment):
    """Test with a required value removed from every config file."""
    config_dir = isolated_config_environment["config_dir"]
    _edit_test_config(config_dir, db_path=None)
    base_path = config_dir / "config.base.yaml"
    with open(base_path, "r") as f:
        base_data = yaml.safe_load(f)
    del base_data["db_path"]
    with open(base_path, "w") as f:
        yaml.dump(base_data, f)

    with pytest.raises(ValueError, match="Missing required config value: 'db_path'"):
        _ = ConfigLoader.load_app_config("test", config_dir=config_dir)


def test_invalid_type_in_config(isolated_config_environment):
    config_dir = isolated_config_environment["config_dir"]
    _edit_test_config(config_dir, quote_batch_size="not-a-number")

    with pytest.raises(TypeError):
        _ = ConfigLoader.load_app_config("test", config_dir=config_dir)


@pytest.mark.parametrize(
    "changes",
    [
        {"quote_batch_size": 0},
        {"quote_cache_seconds": -1},
        {"quote_batch_delay_seconds": -0.5},
        {"user_id": ""},
    ],
)
def test_out_of_range_values_are_rejected(isolated_config_environment, changes):
    config_dir = isolated_config_environment["config_dir"]
    _edit_test_config(config_dir, **changes)

    with pytest.raises(ValueError):
        _ = ConfigLoader.load_app_config("test", config_dir=config_dir)


def test_log_config_is_found_beside_config_files(isolated_config_environment, monkeypatch):
    monkeypatch.chdir(isolated_config_environment["temp_dir"] / "config")
    config_dir = isolated_config_environment["config_dir"]

    config = ConfigLoader.load_app_config("test", config_dir=config_dir)

    assert config.log_config_path == config_dir / "logging_config.yaml"


def test_args_to_overrides_keeps_only_given_config_fields():
    args = argparse.Namespace(
        command="report",
        env="test",
        config_file=None,
        user_id="bob",
        db_path=None,
        limit=5,
    )

    assert ConfigLoader.args_to_overrides(args) == {"user_id": "bob"}
