"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

from pricesync.core.calendar import date_from_ms

# Fixed number of fractional digits for stored and displayed prices
PRICE_DECIMALS = 6
_PRICE_QUANTUM = Decimal(1).scaleb(-PRICE_DECIMALS)


def format_price(value: Any) -> str:
    """Format a numeric value as a decimal string with exactly 6 fractional digits.

    Accepts ``Decimal``, ``int``, ``float`` or numeric strings such as the
    ``"0.12345600"`` values Binance returns. Rounds half-up.

    Raises:
        ValueError: If the value is not a finite number.
    """
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"not a decimal price: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"price must be finite, got {value!r}")
    return str(amount.quantize(_PRICE_QUANTUM, rounding=ROUND_HALF_UP))


# --- Enumerations ---


class StorageBackend(StrEnum):
    """Supported key-value backends."""

    SQLITE = "sqlite"
    MEMORY = "memory"


class SyncStatus(StrEnum):
    """States of one sync cycle."""

    IDLE = "idle"
    CHECKING = "checking"
    FETCHING = "fetching"
    MERGING = "merging"
    PERSISTED = "persisted"
    FAILED = "failed"


# --- Price Models ---


class PricePoint(BaseModel):
    """One day's opening price. At most one per date within a series."""

    model_config = ConfigDict(frozen=True)

    date: date
    price: str

    @field_validator("price", mode="before")
    @classmethod
    def price_fixed_decimals(cls, v: Any) -> str:
        return format_price(v)


Series = list[PricePoint]


class Candle(BaseModel):
    """A single daily kline as served by the exchange."""

    model_config = ConfigDict(frozen=True)

    open_time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    close_time: int | None = None

    @property
    def day(self) -> date:
        """UTC calendar day the candle opened on."""
        return date_from_ms(self.open_time)

    def to_price_point(self) -> PricePoint:
        return PricePoint(date=self.day, price=self.open)


# --- Sync Models ---


class SyncState(BaseModel):
    """Derived freshness state. Not persisted."""

    model_config = ConfigDict(frozen=True)

    last_stored_date: date | None = None
    today: date

    @property
    def needs_fetch(self) -> bool:
        return self.last_stored_date is None or self.last_stored_date < self.today


class SyncResult(BaseModel):
    """Outcome of one orchestrator cycle."""

    model_config = ConfigDict(frozen=True)

    series: list[PricePoint]
    new_points: int = 0
    fetched: bool = False
    status: SyncStatus
    error: str | None = None
    started_at: datetime
    finished_at: datetime

    @property
    def ok(self) -> bool:
        return self.status != SyncStatus.FAILED

    @property
    def last_date(self) -> date | None:
        return max((p.date for p in self.series), default=None)
