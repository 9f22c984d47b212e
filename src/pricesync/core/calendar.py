"""UTC calendar-day helpers shared by the fetcher, orchestrator and scheduler."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

MS_PER_DAY = 24 * 60 * 60 * 1000


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(moment: datetime) -> datetime:
    """Return `moment` as an aware UTC datetime. Naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def utc_date(moment: datetime) -> date:
    """UTC calendar day containing `moment`."""
    return as_utc(moment).date()


def day_start_ms(day: date) -> int:
    """Epoch milliseconds of 00:00:00.000 UTC on `day`."""
    return int(datetime.combine(day, time.min, tzinfo=UTC).timestamp() * 1000)


def day_end_ms(day: date) -> int:
    """Epoch milliseconds of 23:59:59.999 UTC on `day`."""
    return day_start_ms(day) + MS_PER_DAY - 1


def date_from_ms(ms: int) -> date:
    """UTC calendar day containing the epoch-millisecond timestamp `ms`."""
    return (datetime(1970, 1, 1, tzinfo=UTC) + timedelta(milliseconds=ms)).date()
