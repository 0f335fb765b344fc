"""SQLite implementation of the history store."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..errors import PersistenceError
from .listeners import ErrorCallback, ListenerHub, MonotonicClock, Subscription, UpdateCallback
from .models import StoredDocument
from .repository import HistoryStore

logger = logging.getLogger(__name__)


class SQLiteHistoryStore(HistoryStore):
    """Persist history using SQLite.

    Writes made through this store notify its listeners immediately. With
    ``poll_interval`` set, writes from other processes are picked up by
    polling while a collection has listeners.
    """

    def __init__(
        self,
        db_path: str | Path,
        clock: Optional[Callable[[], datetime]] = None,
        poll_interval: Optional[float] = None,
    ):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._clock = MonotonicClock(clock)
        self._hub = ListenerHub()
        self.poll_interval = poll_interval
        self._pollers: Dict[str, asyncio.Task] = {}
        self._seen_counts: Dict[str, int] = {}
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS history (
                id TEXT PRIMARY KEY,
                collection_key TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT
            )
            """
        )
        cur.execute(
            "CREATE INDEX IF NOT EXISTS history_collection ON history (collection_key)"
        )
        self._conn.commit()

    def close(self) -> None:
        for task in list(self._pollers.values()):
            task.cancel()
        self._pollers.clear()
        self._conn.close()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def _count(self, collection_key: str) -> int:
        rows = self._fetchall(
            "SELECT COUNT(*) AS n FROM history WHERE collection_key = ?", collection_key
        )
        return rows[0]["n"]

    # ------------------------------------------------------------------
    # Store API
    async def append(self, collection_key: str, record: dict[str, Any]) -> StoredDocument:
        document = StoredDocument(
            id=uuid.uuid4().hex, created_at=self._clock(), data=dict(record)
        )
        try:
            await asyncio.to_thread(
                self._execute,
                "INSERT INTO history (id, collection_key, data, created_at) VALUES (?, ?, ?, ?)",
                document.id,
                collection_key,
                json.dumps(document.data),
                document.created_at.isoformat(),
            )
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to append to {collection_key}: {e}") from e

        if collection_key in self._seen_counts:
            self._seen_counts[collection_key] += 1
        await self._hub.publish(collection_key, lambda: self.list_documents(collection_key))
        return document

    async def list_documents(self, collection_key: str) -> list[StoredDocument]:
        try:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT id, data, created_at FROM history WHERE collection_key = ?",
                collection_key,
            )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to read {collection_key}: {e}") from e
        return [
            StoredDocument(
                id=r["id"],
                data=json.loads(r["data"]),
                created_at=datetime.fromisoformat(r["created_at"]) if r["created_at"] else None,
            )
            for r in rows
        ]

    async def subscribe(
        self,
        collection_key: str,
        on_update: UpdateCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        subscription = await self._hub.subscribe(
            collection_key,
            on_update,
            on_error,
            fetch=lambda: self.list_documents(collection_key),
        )
        if self.poll_interval and collection_key not in self._pollers:
            self._seen_counts[collection_key] = await asyncio.to_thread(
                self._count, collection_key
            )
            self._pollers[collection_key] = asyncio.create_task(
                self._poll(collection_key)
            )
        return subscription

    async def _poll(self, collection_key: str) -> None:
        """Publish when another process changes the collection."""
        try:
            while self._hub.listener_count(collection_key):
                await asyncio.sleep(self.poll_interval)
                try:
                    count = await asyncio.to_thread(self._count, collection_key)
                except sqlite3.Error as e:
                    logger.warning(f"Polling {collection_key} failed: {e}")
                    continue
                if count != self._seen_counts.get(collection_key):
                    self._seen_counts[collection_key] = count
                    await self._hub.publish(
                        collection_key, lambda: self.list_documents(collection_key)
                    )
        finally:
            self._pollers.pop(collection_key, None)
            self._seen_counts.pop(collection_key, None)
