"""PostgreSQL implementation of the history store."""

from __future__ import annotations

import json
from typing import Any

import asyncpg

from ..errors import PersistenceError
from .listeners import ErrorCallback, ListenerHub, Subscription, UpdateCallback
from .models import StoredDocument
from .repository import HistoryStore


class PostgresHistoryStore(HistoryStore):
    """Persist history using PostgreSQL.

    Creation timestamps are assigned by the database server. Live updates are
    delivered to listeners in the same process.
    """

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False
        self._hub = ListenerHub()

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS history (
                id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
                collection_key TEXT NOT NULL,
                data JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        await conn.execute(
            "CREATE INDEX IF NOT EXISTS history_collection ON history (collection_key)"
        )

    def close(self) -> None:
        # Connections are opened per operation.
        pass

    # ------------------------------------------------------------------
    async def append(self, collection_key: str, record: dict[str, Any]) -> StoredDocument:
        try:
            conn = await self._connect()
            try:
                row = await conn.fetchrow(
                    "INSERT INTO history (collection_key, data) VALUES ($1, $2) RETURNING id, created_at",
                    collection_key,
                    json.dumps(record),
                )
            finally:
                await conn.close()
        except (OSError, asyncpg.PostgresError) as e:
            raise PersistenceError(f"Failed to append to {collection_key}: {e}") from e

        document = StoredDocument(
            id=str(row["id"]), created_at=row["created_at"], data=dict(record)
        )
        await self._hub.publish(collection_key, lambda: self.list_documents(collection_key))
        return document

    async def list_documents(self, collection_key: str) -> list[StoredDocument]:
        try:
            conn = await self._connect()
            try:
                rows = await conn.fetch(
                    "SELECT id, data, created_at FROM history WHERE collection_key = $1",
                    collection_key,
                )
            finally:
                await conn.close()
        except (OSError, asyncpg.PostgresError) as e:
            raise PersistenceError(f"Failed to read {collection_key}: {e}") from e
        return [
            StoredDocument(
                id=str(r["id"]), data=json.loads(r["data"]), created_at=r["created_at"]
            )
            for r in rows
        ]

    async def subscribe(
        self,
        collection_key: str,
        on_update: UpdateCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        return await self._hub.subscribe(
            collection_key,
            on_update,
            on_error,
            fetch=lambda: self.list_documents(collection_key),
        )
