"""Unit tests for configuration models and loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from numisma.core.config import get_settings, load_app_config, load_toml, reset_settings
from numisma.models.config import AppConfig


class TestAppConfig:
    """Tests for AppConfig."""

    def test_default_config(self, monkeypatch) -> None:
        """Test default application configuration."""
        for key in list(os.environ):
            if key.startswith("NUMISMA_"):
                monkeypatch.delenv(key)
        config = AppConfig()
        assert config.data_dir == Path.home() / ".numisma"
        assert config.database_path == Path.home() / ".numisma" / "numisma.db"
        assert config.user_id == "default"
        assert config.top_holdings == 3
        assert config.day_change_tolerance_hours == 6.0

    def test_custom_db_path(self) -> None:
        """Test custom database path."""
        config = AppConfig(db_path=Path("/custom/path/db.sqlite"))
        assert config.database_path == Path("/custom/path/db.sqlite")

    def test_env_prefix(self, monkeypatch) -> None:
        """Test that NUMISMA_ env prefix works."""
        monkeypatch.setenv("NUMISMA_DATA_DIR", "/tmp/numisma_test")
        monkeypatch.setenv("NUMISMA_USER_ID", "alice")
        monkeypatch.setenv("NUMISMA_TOP_HOLDINGS", "5")
        config = load_app_config()
        assert config.data_dir == Path("/tmp/numisma_test")
        assert config.user_id == "alice"
        assert config.top_holdings == 5

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            AppConfig(log_level="LOUD")

    def test_ensure_data_dir(self, tmp_path) -> None:
        config = AppConfig(data_dir=tmp_path / "data")
        assert config.ensure_data_dir().is_dir()


class TestSettingsSingleton:
    """Tests for the cached settings."""

    def test_cached_until_reset(self, monkeypatch) -> None:
        reset_settings()
        monkeypatch.setenv("NUMISMA_USER_ID", "first")
        first = get_settings()
        monkeypatch.setenv("NUMISMA_USER_ID", "second")
        assert get_settings() is first
        reset_settings()
        assert get_settings().user_id == "second"
        reset_settings()


class TestLoadToml:
    """Tests for TOML loading."""

    def test_load_valid_toml(self, tmp_path) -> None:
        path = tmp_path / "prices.toml"
        path.write_text('[prices]\nBTC = 65000\nETH = "3200.50"\n')
        assert load_toml(path) == {"prices": {"BTC": 65000, "ETH": "3200.50"}}

    def test_load_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_toml(tmp_path / "missing.toml")
