"""Custom exception hierarchy for pricesync."""

from typing import Any


class PriceSyncError(Exception):
    """Base exception for all pricesync errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(PriceSyncError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value
    """


class ExchangeError(PriceSyncError):
    """Request to the exchange failed or returned a non-success status.

    Policy: log and skip the window. Do not abort the sync cycle.

    Context keys:
        url: str — the URL that was being fetched
        status_code: int | None — HTTP status code if a response arrived
    """


class RateLimitError(ExchangeError):
    """Exchange rate limit exceeded (HTTP 429) or IP banned (HTTP 418).

    Policy: backoff and retry on 429 (handled by BinanceClient internally).

    Context keys:
        retry_after: int | None — seconds to wait
    """


class StorageError(PriceSyncError):
    """Key-value backend operation failed.

    Policy: raise on write. Reads fall back to an empty series.

    Context keys:
        operation: str — "get", "set", "initialize"
        key: str — the slot involved
    """
