"""Windowed historical fetch of daily opening prices."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from datetime import date, timedelta

from pricesync.core.calendar import day_end_ms, day_start_ms
from pricesync.core.config import MAX_WINDOW_DAYS
from pricesync.core.models import PricePoint
from pricesync.exchange.client import CandleSource

logger = logging.getLogger(__name__)


def iter_windows(
    start: date, end: date, window_days: int = MAX_WINDOW_DAYS
) -> Iterator[tuple[date, date]]:
    """Yield consecutive ``(window_start, window_end)`` pairs covering ``[start, end]``.

    Each window spans at most ``window_days`` calendar days, both ends
    inclusive. Yields nothing when ``start > end``.
    """
    if window_days < 1:
        raise ValueError(f"window_days must be >= 1, got {window_days}")
    step = timedelta(days=window_days)
    current = start
    while current <= end:
        yield current, min(current + step - timedelta(days=1), end)
        current += step


class BatchFetcher:
    """Fetches daily price points for a date range in bounded windows.

    Parameters
    ----------
    source : CandleSource
        Upstream candle provider (normally a BinanceClient).
    earliest_date : date
        Points dated before this are never emitted.
    window_days : int
        Calendar days per request, at most 1000.
    batch_delay : float
        Seconds to pause between windows.
    sleep : callable
        Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        source: CandleSource,
        earliest_date: date,
        window_days: int = MAX_WINDOW_DAYS,
        batch_delay: float = 0.2,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        if window_days < 1 or window_days > MAX_WINDOW_DAYS:
            raise ValueError(f"window_days must be between 1 and {MAX_WINDOW_DAYS}")
        self._source = source
        self._earliest = earliest_date
        self._window_days = window_days
        self._delay = batch_delay
        self._sleep = sleep

    @property
    def source(self) -> CandleSource:
        return self._source

    @property
    def earliest_date(self) -> date:
        return self._earliest

    async def fetch_range(
        self,
        start: date,
        end: date,
        exclude: Iterable[date] = (),
    ) -> list[PricePoint]:
        """Fetch points for days in ``[start, end]`` not already in ``exclude``.

        A failing window is logged and skipped; the remaining windows are
        still fetched.

        Returns:
            New points in the order the exchange returned them.
        """
        seen = set(exclude)
        points: list[PricePoint] = []

        for i, (window_start, window_end) in enumerate(
            iter_windows(start, end, self._window_days)
        ):
            if i > 0 and self._delay > 0:
                await self._sleep(self._delay)

            try:
                candles = await self._source.fetch_candles(
                    day_start_ms(window_start),
                    day_end_ms(window_end),
                    limit=MAX_WINDOW_DAYS,
                )
            except Exception as e:
                logger.exception(
                    "Failed to fetch window %s..%s, skipping: %s",
                    window_start, window_end, e,
                )
                continue

            added = 0
            for candle in candles:
                point = candle.to_price_point()
                if point.date in seen or point.date < self._earliest:
                    continue
                seen.add(point.date)
                points.append(point)
                added += 1

            logger.debug(
                "Window %s..%s: %d candles, %d new points",
                window_start, window_end, len(candles), added,
            )

        return points
