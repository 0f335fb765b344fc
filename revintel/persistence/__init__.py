"""Persistence layer for workflow history."""

from __future__ import annotations

import os
from typing import Optional

from ..config import RevintelConfig, load_config
from .inmemory import InMemoryHistoryStore
from .listeners import ListenerHub, Subscription
from .models import HistoryEntry, StoredDocument, history_collection_key
from .repository import HistoryStore
from .sqlite import SQLiteHistoryStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresHistoryStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresHistoryStore = None  # type: ignore


def get_history_store(
    database_url: Optional[str] = None, config: Optional[RevintelConfig] = None
) -> HistoryStore:
    """Factory function to obtain a history store.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``REVINTEL_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory store is returned.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("REVINTEL_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.history.database_url
    )

    if not database_url:
        return InMemoryHistoryStore()

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteHistoryStore(path, poll_interval=config.history.poll_interval)
    if database_url.startswith("postgres://") or database_url.startswith("postgresql://"):
        if PostgresHistoryStore is None:
            raise RuntimeError("Postgres support not available; install asyncpg")
        return PostgresHistoryStore(database_url)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "HistoryEntry",
    "HistoryStore",
    "InMemoryHistoryStore",
    "ListenerHub",
    "PostgresHistoryStore",
    "SQLiteHistoryStore",
    "StoredDocument",
    "Subscription",
    "get_history_store",
    "history_collection_key",
]
