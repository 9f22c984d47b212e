"""Incremental sync: merging, windowed fetching, orchestration, scheduling."""

from pricesync.sync.fetcher import BatchFetcher, iter_windows
from pricesync.sync.merger import latest_date, merge_series, remove_duplicates
from pricesync.sync.orchestrator import SyncOrchestrator, create_orchestrator
from pricesync.sync.scheduler import (
    DailyScheduler,
    ms_until_next_utc_midnight,
    next_utc_midnight,
)

__all__ = [
    "BatchFetcher",
    "DailyScheduler",
    "SyncOrchestrator",
    "create_orchestrator",
    "iter_windows",
    "latest_date",
    "merge_series",
    "ms_until_next_utc_midnight",
    "next_utc_midnight",
    "remove_duplicates",
]
