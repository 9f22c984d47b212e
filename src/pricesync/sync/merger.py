"""Series merging: concatenate, sort ascending by date, drop duplicate dates."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from pricesync.core.models import PricePoint


def remove_duplicates(series: Iterable[PricePoint]) -> list[PricePoint]:
    """Keep the first point seen for each date, preserving order."""
    seen: set[date] = set()
    unique: list[PricePoint] = []
    for point in series:
        if point.date in seen:
            continue
        seen.add(point.date)
        unique.append(point)
    return unique


def merge_series(
    existing: Iterable[PricePoint], incoming: Iterable[PricePoint]
) -> list[PricePoint]:
    """Merge two series into one ascending, duplicate-free series.

    ``sorted`` is stable, so when both inputs carry the same date the
    point from ``existing`` is kept.
    """
    combined = [*existing, *incoming]
    return remove_duplicates(sorted(combined, key=lambda p: p.date))


def latest_date(series: Iterable[PricePoint]) -> date | None:
    """Most recent date in the series, or None when empty."""
    return max((p.date for p in series), default=None)
