"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from datetime import date
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from pricesync.core.exceptions import ConfigError
from pricesync.core.models import StorageBackend

# Binance serves at most this many klines per request
MAX_WINDOW_DAYS = 1000


class ExchangeConfig(BaseModel):
    """Binance public REST API access configuration."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://api.binance.com/api/v3"
    symbol: str = "GMTUSDC"
    request_timeout: int = 30
    rate_limit: int = 10

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("symbol")
    @classmethod
    def symbol_upper(cls, v: str) -> str:
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError(f"symbol must be alphanumeric, got {v!r}")
        return v

    @field_validator("rate_limit")
    @classmethod
    def rate_limit_in_range(cls, v: int) -> int:
        if v < 1 or v > 20:
            raise ValueError("rate_limit must be between 1 and 20")
        return v


class SyncConfig(BaseModel):
    """Historical sync configuration."""

    model_config = ConfigDict(frozen=True)

    start_date: date = date(2026, 1, 1)
    window_days: int = MAX_WINDOW_DAYS
    batch_delay_ms: int = 200
    resume_from_last: bool = False

    @field_validator("window_days")
    @classmethod
    def window_within_exchange_cap(cls, v: int) -> int:
        if v < 1 or v > MAX_WINDOW_DAYS:
            raise ValueError(f"window_days must be between 1 and {MAX_WINDOW_DAYS}")
        return v

    @field_validator("batch_delay_ms")
    @classmethod
    def delay_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("batch_delay_ms must be >= 0")
        return v


class StorageConfig(BaseModel):
    """Key-value backend configuration."""

    model_config = ConfigDict(frozen=True)

    backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: str = "./data/pricesync.db"
    key: str = "gmt_usdc_price_data"

    @field_validator("key")
    @classmethod
    def key_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("key must not be empty")
        return v


class SchedulerConfig(BaseModel):
    """Daily refresh scheduling."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    sync_on_start: bool = True


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "127.0.0.1"
    port: int = 8000


class PriceSyncConfig(BaseModel):
    """Root configuration for pricesync."""

    model_config = ConfigDict(frozen=True)

    exchange: ExchangeConfig = ExchangeConfig()
    sync: SyncConfig = SyncConfig()
    storage: StorageConfig = StorageConfig()
    scheduler: SchedulerConfig = SchedulerConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "PRICESYNC_",
) -> PriceSyncConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (PRICESYNC_EXCHANGE__SYMBOL, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        PRICESYNC_SYNC__WINDOW_DAYS=500  ->  sync.window_days = 500
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return PriceSyncConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("PRICESYNC_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from PRICESYNC_CONFIG not found: {env_path}",
                context={"field": "PRICESYNC_CONFIG", "value": env_path},
            )
        return p

    default = Path("pricesync.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels. Values stay strings;
    model validation coerces them to the field types.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        # Skip the CONFIG env var itself
        if parts == ["config"]:
            continue

        target = result
        for part in parts[:-1]:
            nested = target.get(part)
            target[part] = dict(nested) if isinstance(nested, dict) else {}
            target = target[part]
        target[parts[-1]] = value

    return result
