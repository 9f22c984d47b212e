"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from pricesync.core.config import PriceSyncConfig
from pricesync.storage.series import SeriesStore
from pricesync.sync.orchestrator import SyncOrchestrator
from pricesync.sync.scheduler import DailyScheduler


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: PriceSyncConfig
    store: SeriesStore
    orchestrator: SyncOrchestrator
    scheduler: DailyScheduler | None = None


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> PriceSyncConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_store(request: Request) -> SeriesStore:
    """Dependency: retrieve the series store."""
    return request.app.state.app_state.store


def get_orchestrator(request: Request) -> SyncOrchestrator:
    """Dependency: retrieve the sync orchestrator."""
    return request.app.state.app_state.orchestrator
