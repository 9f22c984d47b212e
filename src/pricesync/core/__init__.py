"""Core types shared by every pricesync package: models, config, errors."""

from pricesync.core.config import (
    APIConfig,
    ExchangeConfig,
    PriceSyncConfig,
    SchedulerConfig,
    StorageConfig,
    SyncConfig,
    load_config,
)
from pricesync.core.exceptions import (
    ConfigError,
    ExchangeError,
    PriceSyncError,
    RateLimitError,
    StorageError,
)
from pricesync.core.models import (
    Candle,
    PricePoint,
    Series,
    StorageBackend,
    SyncResult,
    SyncState,
    SyncStatus,
    format_price,
)

__all__ = [
    # Models
    "Candle",
    "PricePoint",
    "Series",
    "SyncResult",
    "SyncState",
    # Enums
    "StorageBackend",
    "SyncStatus",
    # Helpers
    "format_price",
    # Config
    "PriceSyncConfig",
    "ExchangeConfig",
    "SyncConfig",
    "StorageConfig",
    "SchedulerConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "PriceSyncError",
    "ConfigError",
    "ExchangeError",
    "RateLimitError",
    "StorageError",
]
