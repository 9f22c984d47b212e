"""Rate-limited async HTTP client for the Binance public REST API."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Protocol, runtime_checkable

import httpx
from aiolimiter import AsyncLimiter

from pricesync.core.config import MAX_WINDOW_DAYS, ExchangeConfig
from pricesync.core.exceptions import ExchangeError, RateLimitError
from pricesync.core.models import Candle
from pricesync.exchange.adapter import KlineAdapter

logger = logging.getLogger(__name__)

_KLINES_PATH = "/klines"
_TICKER_PRICE_PATH = "/ticker/price"
_DAILY_INTERVAL = "1d"
_USER_AGENT = "pricesync/0.1"

# Retry configuration
_MAX_RETRIES_429 = 3
_DEFAULT_RETRY_AFTER = 5
_MAX_RETRIES_SERVER = 3
_MAX_RETRIES_CONNECTION = 2
_CONNECTION_RETRY_DELAY = 2.0


@runtime_checkable
class CandleSource(Protocol):
    """Upstream daily price source consumed by the batch fetcher.

    All sync code depends on this protocol, never on BinanceClient directly.
    """

    async def fetch_candles(
        self, start_ms: int, end_ms: int, limit: int = MAX_WINDOW_DAYS
    ) -> list[Candle]:
        """Daily candles opening within ``[start_ms, end_ms]`` (UTC epoch ms)."""
        ...

    async def fetch_latest_price(self) -> Decimal:
        """Most recent traded price, used when today's candle is missing."""
        ...


class BinanceClient:
    """Rate-limited async client for Binance spot market data.

    Only unauthenticated endpoints are used. The symbol is fixed per
    client instance.

    All methods are async. Use via `async with BinanceClient(...) as client:`.
    """

    def __init__(
        self,
        config: ExchangeConfig,
        adapter: KlineAdapter | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._adapter = adapter or KlineAdapter()
        self._limiter = AsyncLimiter(max_rate=config.rate_limit, time_period=1.0)
        self._client = httpx.AsyncClient(
            headers={"User-Agent": _USER_AGENT},
            timeout=httpx.Timeout(config.request_timeout),
            transport=transport,
        )

    @property
    def symbol(self) -> str:
        return self._config.symbol

    async def __aenter__(self) -> BinanceClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client. Called automatically by __aexit__."""
        await self._client.aclose()

    # --- Market Data ---

    async def fetch_candles(
        self, start_ms: int, end_ms: int, limit: int = MAX_WINDOW_DAYS
    ) -> list[Candle]:
        """Fetch daily klines for the configured symbol.

        Args:
            start_ms: Window start, epoch milliseconds UTC (inclusive).
            end_ms: Window end, epoch milliseconds UTC (inclusive).
            limit: Maximum candles to return (1-1000).

        Returns:
            Candles in exchange order (ascending open time).

        Raises:
            ExchangeError: Network error, non-200 status, or malformed body.
            RateLimitError: If Binance keeps returning 429, or returns 418.
        """
        if limit < 1 or limit > MAX_WINDOW_DAYS:
            raise ValueError(f"limit must be between 1 and {MAX_WINDOW_DAYS}, got {limit}")
        if end_ms < start_ms:
            raise ValueError(f"end_ms ({end_ms}) must be >= start_ms ({start_ms})")

        url = f"{self._config.base_url}{_KLINES_PATH}"
        params = {
            "symbol": self.symbol,
            "interval": _DAILY_INTERVAL,
            "startTime": str(start_ms),
            "endTime": str(end_ms),
            "limit": str(limit),
        }
        response = await self._rate_limited_request("GET", url, params=params)
        candles = self._adapter.adapt(self._json(response, url))
        logger.debug(
            "Fetched %d %s candles for [%d, %d]", len(candles), self.symbol, start_ms, end_ms
        )
        return candles

    async def fetch_latest_price(self) -> Decimal:
        """Fetch the latest traded price for the configured symbol.

        Raises:
            ExchangeError: Network error, non-200 status, or malformed body.
        """
        url = f"{self._config.base_url}{_TICKER_PRICE_PATH}"
        response = await self._rate_limited_request(
            "GET", url, params={"symbol": self.symbol}
        )
        data = self._json(response, url)
        try:
            return Decimal(str(data["price"]))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise ExchangeError(
                f"Malformed ticker response from {url}",
                context={"url": url},
            ) from e

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ExchangeError(
                f"Invalid JSON from {url}",
                context={"url": url, "status_code": response.status_code},
            ) from e

    # --- Rate Limiting & Retry ---

    async def _rate_limited_request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Execute an HTTP request with rate limiting and retry logic.

        Rate limiting:
            Uses aiolimiter.AsyncLimiter as a token bucket. Each request
            acquires one token before sending.

        Retry policy:
            - HTTP 429: Wait for Retry-After header value (or 5s default),
              then retry up to 3 times.
            - HTTP 418: Binance IP ban. Raise immediately.
            - HTTP 500/502/503/504: Retry up to 3 times with exponential backoff.
            - Other HTTP errors: Raise immediately (no retry).
            - Transport errors: Retry up to 2 times with 2s delay.

        Returns:
            httpx.Response with status 200.

        Raises:
            RateLimitError: On 418, or if retries are exhausted on 429 responses.
            ExchangeError: If retries are exhausted on server or transport errors.
        """
        connection_failures = 0

        for attempt in range(_MAX_RETRIES_429 + 1):
            try:
                await self._limiter.acquire()
                response = await self._client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                connection_failures += 1
                if connection_failures <= _MAX_RETRIES_CONNECTION:
                    logger.warning(
                        "Transport error on %s (%s), retrying in %ss (attempt %d/%d)",
                        url, e, _CONNECTION_RETRY_DELAY,
                        connection_failures, _MAX_RETRIES_CONNECTION,
                    )
                    await asyncio.sleep(_CONNECTION_RETRY_DELAY)
                    continue
                raise ExchangeError(
                    f"Connection failed after retries: {url}",
                    context={"url": url, "error": str(e)},
                ) from e

            if response.status_code == 200:
                return response

            if response.status_code == 418:
                raise RateLimitError(
                    f"IP banned by exchange (HTTP 418): {url}",
                    context={
                        "url": url,
                        "status_code": 418,
                        "retry_after": _retry_after(response),
                    },
                )

            if response.status_code == 429:
                retry_after = _retry_after(response)
                if attempt < _MAX_RETRIES_429:
                    logger.warning(
                        "Rate limited (429) on %s, waiting %ds (attempt %d/%d)",
                        url, retry_after, attempt + 1, _MAX_RETRIES_429,
                    )
                    await asyncio.sleep(retry_after)
                    continue
                raise RateLimitError(
                    f"Rate limit exceeded after {_MAX_RETRIES_429} retries: {url}",
                    context={"url": url, "status_code": 429, "retry_after": retry_after},
                )

            if response.status_code in (500, 502, 503, 504):
                if attempt < _MAX_RETRIES_SERVER:
                    delay = 2**attempt
                    logger.warning(
                        "Server error %d on %s, retrying in %ds (attempt %d/%d)",
                        response.status_code, url, delay,
                        attempt + 1, _MAX_RETRIES_SERVER,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise ExchangeError(
                    f"Server error {response.status_code} after retries: {url}",
                    context={"url": url, "status_code": response.status_code},
                )

            # Non-retryable HTTP error
            raise ExchangeError(
                f"HTTP {response.status_code} from {url}{_error_detail(response)}",
                context={"url": url, "status_code": response.status_code},
            )

        raise ExchangeError(
            f"Request failed after all retries: {url}",
            context={"url": url},
        )


def _retry_after(response: httpx.Response) -> int:
    try:
        return int(response.headers.get("Retry-After", _DEFAULT_RETRY_AFTER))
    except ValueError:
        return _DEFAULT_RETRY_AFTER


def _error_detail(response: httpx.Response) -> str:
    """Binance error bodies look like ``{"code": -1121, "msg": "Invalid symbol."}``."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict) and "msg" in body:
        return f": {body['msg']} (code {body.get('code')})"
    return ""
