"""Persistence: key-value backends and the single-slot series store."""

from pricesync.storage.backends import (
    KeyValueBackend,
    MemoryKeyValueBackend,
    SqliteKeyValueBackend,
)
from pricesync.storage.series import SeriesStore, create_store

__all__ = [
    "KeyValueBackend",
    "MemoryKeyValueBackend",
    "SeriesStore",
    "SqliteKeyValueBackend",
    "create_store",
]
