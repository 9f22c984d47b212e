"""Shared pytest fixtures for pricesync."""

from __future__ import annotations

import asyncio
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from pricesync.core.calendar import day_end_ms, day_start_ms
from pricesync.core.exceptions import ExchangeError, StorageError
from pricesync.core.models import Candle, PricePoint
from pricesync.storage.backends import MemoryKeyValueBackend
from pricesync.storage.series import SeriesStore

STORE_KEY = "gmt_usdc_price_data"


def make_candle(day: date, open_price: str) -> Candle:
    return Candle(
        open_time=day_start_ms(day),
        open=Decimal(open_price),
        high=Decimal(open_price) * 2,
        low=Decimal(open_price) / 2,
        close=Decimal(open_price),
        volume=Decimal("1000"),
        close_time=day_end_ms(day),
    )


def daily_prices(start: date, days: int, base: str = "0.1") -> dict[date, str]:
    """``days`` consecutive dates from ``start`` with distinct prices."""
    return {
        start + timedelta(days=i): str(Decimal(base) + Decimal(i) / 1000)
        for i in range(days)
    }


def kline_row(day: date, open_price: str) -> list:
    """One raw Binance ``/klines`` row."""
    return [
        day_start_ms(day), open_price, open_price, open_price, open_price,
        "1000.00000000", day_end_ms(day), "100.0", 10, "500.0", "50.0", "0",
    ]


def klines_responder(prices: dict[date, str]):
    """respx side effect serving ``/klines`` from a date -> price mapping."""

    def _respond(request: httpx.Request) -> httpx.Response:
        params = request.url.params
        start, end = int(params["startTime"]), int(params["endTime"])
        rows = [
            kline_row(day, price)
            for day, price in sorted(prices.items())
            if start <= day_start_ms(day) <= end
        ]
        return httpx.Response(200, json=rows[: int(params["limit"])])

    return _respond


class FakeCandleSource:
    """In-memory CandleSource serving candles from a date -> price mapping."""

    def __init__(
        self,
        prices: dict[date, str] | None = None,
        latest: str = "0.654321",
        fail_calls: set[int] | None = None,
    ) -> None:
        self.prices = dict(prices or {})
        self.latest = Decimal(latest)
        self.fail_calls = fail_calls or set()
        self.calls: list[tuple[int, int, int]] = []
        self.latest_calls = 0
        self.on_fetch = None

    async def fetch_candles(self, start_ms: int, end_ms: int, limit: int = 1000) -> list[Candle]:
        index = len(self.calls)
        self.calls.append((start_ms, end_ms, limit))
        if self.on_fetch is not None:
            self.on_fetch()
        await asyncio.sleep(0)
        if index in self.fail_calls:
            raise ExchangeError("HTTP 503 from fake", context={"status_code": 503})
        candles = [
            make_candle(day, price)
            for day, price in sorted(self.prices.items())
            if start_ms <= day_start_ms(day) <= end_ms
        ]
        return candles[:limit]

    async def fetch_latest_price(self) -> Decimal:
        self.latest_calls += 1
        return self.latest


class FailingWriteBackend(MemoryKeyValueBackend):
    """Memory backend whose writes always fail."""

    async def set(self, key: str, value: str) -> None:
        raise StorageError("disk full", context={"operation": "set", "key": key})


class FixedClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def source_factory() -> type[FakeCandleSource]:
    return FakeCandleSource


@pytest.fixture
def price_range():
    return daily_prices


@pytest.fixture
def binance_klines():
    return klines_responder


@pytest.fixture
def failing_write_backend() -> FailingWriteBackend:
    return FailingWriteBackend()


@pytest.fixture
def sample_series() -> list[PricePoint]:
    return [
        PricePoint(date=date(2026, 1, 1), price="0.123456"),
        PricePoint(date=date(2026, 1, 2), price="0.130000"),
        PricePoint(date=date(2026, 1, 3), price="0.128500"),
    ]


@pytest.fixture
def memory_backend() -> MemoryKeyValueBackend:
    return MemoryKeyValueBackend()


@pytest.fixture
def memory_store(memory_backend: MemoryKeyValueBackend) -> SeriesStore:
    return SeriesStore(memory_backend, STORE_KEY)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 3, 10, 13, 0, tzinfo=UTC))


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: list[float]):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep
