"""Tests for pricesync.core.config."""

import os
from datetime import date

import pytest
from pydantic import ValidationError

from pricesync.core.config import (
    ExchangeConfig,
    PriceSyncConfig,
    StorageConfig,
    SyncConfig,
    _merge_env_vars,
    load_config,
)
from pricesync.core.exceptions import ConfigError
from pricesync.core.models import StorageBackend


@pytest.fixture(autouse=True)
def clean_env(tmp_path, monkeypatch):
    """Isolate from the caller's PRICESYNC_* variables and any ./pricesync.yml."""
    for key in list(os.environ):
        if key.startswith("PRICESYNC_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


class TestExchangeConfig:
    def test_defaults(self):
        c = ExchangeConfig()
        assert c.base_url == "https://api.binance.com/api/v3"
        assert c.symbol == "GMTUSDC"
        assert c.rate_limit == 10

    def test_trailing_slash_stripped(self):
        c = ExchangeConfig(base_url="https://api.binance.us/api/v3/")
        assert c.base_url == "https://api.binance.us/api/v3"

    def test_symbol_uppercased(self):
        assert ExchangeConfig(symbol=" btcusdt ").symbol == "BTCUSDT"

    def test_symbol_must_be_alphanumeric(self):
        with pytest.raises(ValidationError, match="alphanumeric"):
            ExchangeConfig(symbol="GMT/USDC")

    def test_rate_limit_max(self):
        with pytest.raises(ValidationError, match="between 1 and 20"):
            ExchangeConfig(rate_limit=50)

    def test_rate_limit_min(self):
        with pytest.raises(ValidationError, match="between 1 and 20"):
            ExchangeConfig(rate_limit=0)


class TestSyncConfig:
    def test_defaults(self):
        c = SyncConfig()
        assert c.start_date == date(2026, 1, 1)
        assert c.window_days == 1000
        assert c.batch_delay_ms == 200
        assert c.resume_from_last is False

    def test_window_capped_at_exchange_limit(self):
        with pytest.raises(ValidationError, match="between 1 and 1000"):
            SyncConfig(window_days=1001)

    def test_window_positive(self):
        with pytest.raises(ValidationError, match="between 1 and 1000"):
            SyncConfig(window_days=0)

    def test_negative_delay_rejected(self):
        with pytest.raises(ValidationError, match=">= 0"):
            SyncConfig(batch_delay_ms=-1)

    def test_start_date_from_string(self):
        assert SyncConfig(start_date="2025-06-01").start_date == date(2025, 6, 1)


class TestStorageConfig:
    def test_defaults_to_sqlite(self):
        c = StorageConfig()
        assert c.backend == StorageBackend.SQLITE
        assert c.key == "gmt_usdc_price_data"

    def test_empty_key_rejected(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            StorageConfig(key="  ")

    def test_memory_backend(self):
        assert StorageConfig(backend="memory").backend == StorageBackend.MEMORY


class TestLoadConfig:
    def test_defaults_without_file(self):
        config = load_config()
        assert config == PriceSyncConfig()

    def test_yaml_loading(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text(
            "exchange:\n  symbol: btcusdt\nsync:\n  start_date: 2025-01-01\n  window_days: 500\n"
        )
        config = load_config(config_path=str(yaml_file))
        assert config.exchange.symbol == "BTCUSDT"
        assert config.sync.start_date == date(2025, 1, 1)
        assert config.sync.window_days == 500

    def test_default_file_in_cwd(self, tmp_path):
        (tmp_path / "pricesync.yml").write_text("storage:\n  key: other_key\n")
        assert load_config().storage.key == "other_key"

    def test_config_env_var_path(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "elsewhere.yml"
        yaml_file.write_text("api:\n  port: 9001\n")
        monkeypatch.setenv("PRICESYNC_CONFIG", str(yaml_file))
        assert load_config().api.port == 9001

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("sync:\n  batch_delay_ms: 500\n")
        monkeypatch.setenv("PRICESYNC_SYNC__BATCH_DELAY_MS", "0")
        config = load_config(config_path=str(yaml_file))
        assert config.sync.batch_delay_ms == 0

    def test_env_bool(self, monkeypatch):
        monkeypatch.setenv("PRICESYNC_SCHEDULER__ENABLED", "false")
        assert load_config().scheduler.enabled is False

    def test_missing_file(self):
        with pytest.raises(ConfigError, match="not found"):
            load_config(config_path="/nonexistent/pricesync.yml")

    def test_missing_env_file(self, monkeypatch):
        monkeypatch.setenv("PRICESYNC_CONFIG", "/nonexistent/pricesync.yml")
        with pytest.raises(ConfigError, match="PRICESYNC_CONFIG"):
            load_config()

    def test_invalid_yaml(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("sync: [unclosed\n")
        with pytest.raises(ConfigError, match="parse YAML"):
            load_config(config_path=str(yaml_file))

    def test_yaml_must_be_mapping(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("- one\n- two\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(config_path=str(yaml_file))

    def test_empty_yaml_uses_defaults(self, tmp_path):
        yaml_file = tmp_path / "config.yml"
        yaml_file.write_text("")
        assert load_config(config_path=str(yaml_file)) == PriceSyncConfig()

    def test_validation_error_wrapped(self, monkeypatch):
        monkeypatch.setenv("PRICESYNC_SYNC__WINDOW_DAYS", "5000")
        with pytest.raises(ConfigError) as exc_info:
            load_config()
        assert exc_info.value.context["source"] == "load_config"


class TestEnvHelpers:
    def test_values_left_for_validation(self, monkeypatch):
        monkeypatch.setenv("PRICESYNC_STORAGE__KEY", "12345")
        monkeypatch.setenv("PRICESYNC_SYNC__START_DATE", "2025-06-01")
        config = load_config()
        assert config.storage.key == "12345"
        assert config.sync.start_date == date(2025, 6, 1)

    def test_merge_leaves_base_untouched(self, monkeypatch):
        monkeypatch.setenv("PRICESYNC_API__PORT", "9100")
        base = {"api": {"host": "0.0.0.0"}}
        merged = _merge_env_vars(base, "PRICESYNC_")
        assert merged["api"] == {"host": "0.0.0.0", "port": "9100"}
        assert base == {"api": {"host": "0.0.0.0"}}

    def test_merge_nested(self, monkeypatch):
        monkeypatch.setenv("PRICESYNC_EXCHANGE__SYMBOL", "ETHUSDC")
        merged = _merge_env_vars({"exchange": {"rate_limit": 5}}, "PRICESYNC_")
        assert merged["exchange"] == {"rate_limit": 5, "symbol": "ETHUSDC"}

    def test_config_var_skipped(self, monkeypatch):
        monkeypatch.setenv("PRICESYNC_CONFIG", "x.yml")
        assert "config" not in _merge_env_vars({}, "PRICESYNC_")
