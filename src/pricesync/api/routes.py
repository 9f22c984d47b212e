"""FastAPI route definitions for the pricesync API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

import pricesync
from pricesync.api.deps import AppState, get_app_state, get_config, get_orchestrator, get_store
from pricesync.api.schemas import (
    ErrorResponse,
    HealthResponse,
    PriceListResponse,
    PricePointResponse,
    RefreshResponse,
    StatusResponse,
)
from pricesync.core.calendar import utc_now
from pricesync.storage.series import SeriesStore
from pricesync.sync.orchestrator import SyncOrchestrator
from pricesync.sync.scheduler import next_utc_midnight

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: SeriesStore = Depends(get_store),
    config=Depends(get_config),
):
    """System health and basic statistics."""
    series = await store.load()
    return HealthResponse(
        status="ok",
        version=pricesync.__version__,
        symbol=config.exchange.symbol,
        total_points=len(series),
    )


# -- Prices --


@router.get("/prices", response_model=PriceListResponse)
async def list_prices(
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int | None = Query(None, ge=1),
    store: SeriesStore = Depends(get_store),
    config=Depends(get_config),
):
    """Stored daily prices, newest first by default."""
    series = sorted(await store.load(), key=lambda p: p.date, reverse=order == "desc")
    total = len(series)
    if limit is not None:
        series = series[:limit]
    return PriceListResponse(
        symbol=config.exchange.symbol,
        total=total,
        order=order,
        prices=[PricePointResponse(date=p.date, price=p.price) for p in series],
    )


@router.get(
    "/prices/today",
    response_model=PricePointResponse,
    responses={502: {"model": ErrorResponse, "description": "Exchange unavailable"}},
)
async def today_price(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Today's opening price, or the latest ticker price before the daily candle exists."""
    point = await orchestrator.fetch_today_price()
    return PricePointResponse(date=point.date, price=point.price)


# -- Sync --


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Run a sync cycle now, skipping the freshness check.

    Waits for any cycle already in flight, then runs its own.
    """
    result = await orchestrator.run_cycle(force=True)
    return RefreshResponse(
        status=result.status.value,
        fetched=result.fetched,
        new_points=result.new_points,
        total_points=len(result.series),
        last_date=result.last_date,
        error=result.error,
    )


@router.get("/status", response_model=StatusResponse)
async def sync_status(state: AppState = Depends(get_app_state)):
    """Current sync state, coverage, and the next scheduled fetch."""
    orchestrator = state.orchestrator
    series = await state.store.load()
    dates = [p.date for p in series]

    next_fetch = state.scheduler.next_run_at if state.scheduler else None
    last = orchestrator.last_result

    return StatusResponse(
        symbol=state.config.exchange.symbol,
        state=orchestrator.status.value,
        in_flight=orchestrator.in_flight,
        total_points=len(series),
        first_date=min(dates) if dates else None,
        last_date=max(dates) if dates else None,
        next_fetch_at=next_fetch or next_utc_midnight(utc_now()),
        last_run_at=last.finished_at if last else None,
        last_error=last.error if last else None,
    )
