"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Prices --


class PricePointResponse(BaseModel):
    """One day's opening price."""

    date: date
    price: str


class PriceListResponse(BaseModel):
    """Stored series in display order."""

    symbol: str
    total: int
    order: str
    prices: list[PricePointResponse]


# -- Sync --


class RefreshResponse(BaseModel):
    """Outcome of a manually triggered sync cycle."""

    status: str
    fetched: bool
    new_points: int
    total_points: int
    last_date: date | None = None
    error: str | None = None


class StatusResponse(BaseModel):
    """Sync state and data coverage."""

    symbol: str
    state: str
    in_flight: bool
    total_points: int
    first_date: date | None = None
    last_date: date | None = None
    next_fetch_at: datetime
    last_run_at: datetime | None = None
    last_error: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    """System health check response."""

    status: str
    version: str
    symbol: str
    total_points: int
