"""FastAPI application factory."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pricesync.api.deps import AppState
from pricesync.api.routes import router
from pricesync.api.schemas import ErrorResponse
from pricesync.core.config import PriceSyncConfig, load_config
from pricesync.core.exceptions import ExchangeError, PriceSyncError
from pricesync.exchange.client import BinanceClient, CandleSource
from pricesync.storage.series import create_store
from pricesync.sync.orchestrator import create_orchestrator
from pricesync.sync.scheduler import DailyScheduler

logger = logging.getLogger(__name__)


def _log_startup_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Startup sync failed", exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    store = await create_store(config.storage)

    source: CandleSource | None = app.state._pending_source
    client: BinanceClient | None = None
    if source is None:
        client = BinanceClient(config.exchange)
        source = client

    orchestrator = create_orchestrator(config.sync, store, source)

    scheduler: DailyScheduler | None = None
    if config.scheduler.enabled:
        scheduler = DailyScheduler(orchestrator.run_cycle)
        scheduler.arm()

    startup: asyncio.Task | None = None
    if config.scheduler.sync_on_start:
        startup = asyncio.create_task(orchestrator.run_cycle(), name="pricesync-startup")
        startup.add_done_callback(_log_startup_failure)

    app.state.app_state = AppState(
        config=config,
        store=store,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )

    yield

    if scheduler is not None:
        await scheduler.stop()
    if startup is not None and not startup.done():
        startup.cancel()
        try:
            await startup
        except asyncio.CancelledError:
            logger.info("Startup sync cancelled by shutdown")
    if client is not None:
        await client.close()
    await store.close()


def create_app(
    config: PriceSyncConfig | None = None,
    source: CandleSource | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``source`` replaces the Binance client, mainly for tests.
    """
    import pricesync

    app = FastAPI(
        title="pricesync API",
        description="Daily price history for a single trading pair",
        version=pricesync.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config
    app.state._pending_source = source

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(router, prefix="/api")

    @app.exception_handler(PriceSyncError)
    async def pricesync_exception_handler(request: Request, exc: PriceSyncError):
        status = 502 if isinstance(exc, ExchangeError) else 500
        body = ErrorResponse(error=type(exc).__name__, detail=str(exc))
        return JSONResponse(status_code=status, content=body.model_dump())

    return app
