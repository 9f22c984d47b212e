"""Series persistence: the whole price series as one JSON blob under one key."""

from __future__ import annotations

import json
import logging

from pydantic import TypeAdapter, ValidationError

from pricesync.core.config import StorageConfig
from pricesync.core.exceptions import StorageError
from pricesync.core.models import PricePoint, StorageBackend
from pricesync.storage.backends import (
    KeyValueBackend,
    MemoryKeyValueBackend,
    SqliteKeyValueBackend,
)

logger = logging.getLogger(__name__)

_SERIES_ADAPTER = TypeAdapter(list[PricePoint])


class SeriesStore:
    """Loads and saves the full price series.

    The blob is a JSON array of ``{"date": "YYYY-MM-DD", "price": "0.123456"}``
    objects in ascending date order.
    """

    def __init__(self, backend: KeyValueBackend, key: str) -> None:
        self._backend = backend
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    async def load(self) -> list[PricePoint]:
        """Return the stored series, or an empty list if absent or unreadable.

        Never raises: corrupt blobs and backend read failures are logged
        and treated as an empty series.
        """
        try:
            raw = await self._backend.get(self._key)
        except StorageError as e:
            logger.warning("Could not read %s, starting empty: %s", self._key, e)
            return []
        if raw is None:
            return []

        try:
            return _SERIES_ADAPTER.validate_python(json.loads(raw))
        except (ValueError, ValidationError, RecursionError) as e:
            logger.warning("Stored series under %s is corrupt, ignoring it: %s", self._key, e)
            return []

    async def save(self, series: list[PricePoint]) -> None:
        """Serialize and persist the whole series, replacing prior content.

        Raises:
            StorageError: If the backend write fails.
        """
        blob = _SERIES_ADAPTER.dump_json(series).decode("utf-8")
        await self._backend.set(self._key, blob)
        logger.info("Stored %d price points under %s", len(series), self._key)

    async def close(self) -> None:
        await self._backend.close()


async def create_store(config: StorageConfig) -> SeriesStore:
    """Create and initialize a series store based on configuration."""
    if config.backend == StorageBackend.SQLITE:
        backend = SqliteKeyValueBackend(config.sqlite_path)
        await backend.initialize()
        return SeriesStore(backend, config.key)
    if config.backend == StorageBackend.MEMORY:
        return SeriesStore(MemoryKeyValueBackend(), config.key)
    raise StorageError(
        f"Unsupported storage backend: {config.backend}",
        context={"operation": "create_store", "backend": str(config.backend)},
    )
