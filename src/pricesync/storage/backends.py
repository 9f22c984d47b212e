"""Key-value backends: Protocol definition, SQLite and in-memory implementations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite

from pricesync.core.exceptions import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyValueBackend(Protocol):
    """A flat string-to-string store. Each ``set`` replaces the whole value."""

    async def get(self, key: str) -> str | None: ...
    async def set(self, key: str, value: str) -> None: ...
    async def close(self) -> None: ...


class MemoryKeyValueBackend:
    """In-process backend for tests and throwaway runs."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def close(self) -> None:
        pass


class SqliteKeyValueBackend:
    """SQLite-backed key-value slots.

    Uses aiosqlite for async access. Every ``set`` is a single
    ``INSERT OR REPLACE`` committed on its own, so a reader never sees a
    partially written value.

    Parameters
    ----------
    db_path : str
        Path to the SQLite database file.
        Created automatically if it doesn't exist.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the connection and create the kv table if needed."""
        if self._db is not None:
            return
        try:
            if self._db_path != ":memory:":
                Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._db_path)
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute(
                """CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT (datetime('now'))
                )"""
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite backend: {e}",
                context={"operation": "initialize", "path": self._db_path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def get(self, key: str) -> str | None:
        await self.initialize()
        try:
            async with self._db.execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(
                f"Failed to read key {key!r}: {e}",
                context={"operation": "get", "key": key},
            ) from e
        return row[0] if row is not None else None

    async def set(self, key: str, value: str) -> None:
        await self.initialize()
        try:
            await self._db.execute(
                """INSERT OR REPLACE INTO kv (key, value, updated_at)
                   VALUES (?, ?, datetime('now'))""",
                (key, value),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to write key {key!r}: {e}",
                context={"operation": "set", "key": key},
            ) from e
        logger.debug("Wrote %d bytes to %s", len(value), key)
