"""Sync orchestration: freshness check, fetch, merge, persist."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta

from pricesync.core.calendar import day_end_ms, day_start_ms, utc_date, utc_now
from pricesync.core.config import SyncConfig
from pricesync.core.exceptions import PriceSyncError
from pricesync.core.models import PricePoint, SyncResult, SyncState, SyncStatus
from pricesync.exchange.client import CandleSource
from pricesync.storage.series import SeriesStore
from pricesync.sync.fetcher import BatchFetcher
from pricesync.sync.merger import latest_date, merge_series

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """Keeps the stored series current up to today's UTC date.

    ``run_cycle`` is the entry point for every trigger (startup, the daily
    schedule, manual refresh). Cycles are serialized by an asyncio lock so
    two triggers never interleave their load and save.

    Parameters
    ----------
    store : SeriesStore
        Where the series is loaded from and saved to.
    fetcher : BatchFetcher
        Windowed fetcher over the upstream candle source.
    start_date : date | None
        Lower bound of every fetch. Defaults to the fetcher's earliest date.
    resume_from_last : bool
        Fetch from the day after the latest stored date instead of
        ``start_date``. The merged result is the same either way.
    clock : callable
        Returns the current time, injectable for tests.
    """

    def __init__(
        self,
        store: SeriesStore,
        fetcher: BatchFetcher,
        start_date: date | None = None,
        resume_from_last: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._fetcher = fetcher
        self._start_date = start_date or fetcher.earliest_date
        self._resume_from_last = resume_from_last
        self._clock = clock
        self._lock = asyncio.Lock()
        self.status = SyncStatus.IDLE
        self.last_result: SyncResult | None = None

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    @property
    def store(self) -> SeriesStore:
        return self._store

    def today(self) -> date:
        return utc_date(self._clock())

    def state_for(self, series: Sequence[PricePoint]) -> SyncState:
        return SyncState(last_stored_date=latest_date(series), today=self.today())

    async def ensure_fresh(self, existing: Sequence[PricePoint]) -> list[PricePoint]:
        """Fetch, merge and persist if ``existing`` is behind today.

        Returns ``existing`` unchanged when its latest date is today (or
        later). Storage errors propagate; previously saved data is untouched.
        """
        series, _, _ = await self._sync(existing, force=False)
        return series

    async def run_cycle(self, force: bool = False) -> SyncResult:
        """Load, sync and save under the in-flight lock.

        With ``force`` the freshness check is skipped and a fetch always
        runs. Exchange and storage errors are logged and reported in the
        result; the previously stored series is returned in that case.
        """
        async with self._lock:
            started = self._clock()
            self.status = SyncStatus.CHECKING
            existing = await self._store.load()

            try:
                series, new_points, fetched = await self._sync(existing, force=force)
            except PriceSyncError as e:
                logger.error("Sync cycle failed: %s", e)
                self.status = SyncStatus.FAILED
                result = SyncResult(
                    series=list(existing),
                    status=SyncStatus.FAILED,
                    error=str(e),
                    started_at=started,
                    finished_at=self._clock(),
                )
            except Exception:
                self.status = SyncStatus.FAILED
                raise
            else:
                result = SyncResult(
                    series=series,
                    new_points=new_points,
                    fetched=fetched,
                    status=SyncStatus.PERSISTED if fetched else SyncStatus.IDLE,
                    started_at=started,
                    finished_at=self._clock(),
                )
                self.status = SyncStatus.IDLE
                logger.info(
                    "Sync cycle done: %d points, %d new, fetched=%s",
                    len(series), new_points, fetched,
                )

            self.last_result = result
            return result

    async def fetch_today_price(self) -> PricePoint:
        """Today's opening price, falling back to the latest ticker price.

        The daily candle for today may not exist yet right after midnight;
        the ticker price stands in until it does.

        Raises:
            ExchangeError: If both requests fail.
        """
        today = self.today()
        source = self._fetcher.source
        candles = await source.fetch_candles(day_start_ms(today), day_end_ms(today), limit=1)
        for candle in candles:
            if candle.day == today:
                return candle.to_price_point()

        logger.info("No daily candle yet for %s, using ticker price", today)
        price = await source.fetch_latest_price()
        return PricePoint(date=today, price=price)

    # --- Internals ---

    async def _sync(
        self, existing: Sequence[PricePoint], force: bool
    ) -> tuple[list[PricePoint], int, bool]:
        state = self.state_for(existing)
        if not force and not state.needs_fetch:
            logger.info("Series is current through %s, no fetch needed", state.last_stored_date)
            return list(existing), 0, False

        start = self._fetch_start(state)
        logger.info("Fetching %s..%s (last stored: %s)", start, state.today, state.last_stored_date)

        self.status = SyncStatus.FETCHING
        incoming = await self._fetcher.fetch_range(
            start, state.today, exclude={p.date for p in existing}
        )

        self.status = SyncStatus.MERGING
        merged = merge_series(existing, incoming)
        await self._store.save(merged)

        self.status = SyncStatus.PERSISTED
        return merged, len(incoming), True

    def _fetch_start(self, state: SyncState) -> date:
        if self._resume_from_last and state.last_stored_date is not None:
            return max(self._start_date, state.last_stored_date + timedelta(days=1))
        return self._start_date


def create_orchestrator(
    config: SyncConfig,
    store: SeriesStore,
    source: CandleSource,
    clock: Callable[[], datetime] = utc_now,
) -> SyncOrchestrator:
    """Wire a fetcher and orchestrator from the ``sync`` config section."""
    fetcher = BatchFetcher(
        source,
        earliest_date=config.start_date,
        window_days=config.window_days,
        batch_delay=config.batch_delay_ms / 1000,
    )
    return SyncOrchestrator(
        store,
        fetcher,
        start_date=config.start_date,
        resume_from_last=config.resume_from_last,
        clock=clock,
    )
