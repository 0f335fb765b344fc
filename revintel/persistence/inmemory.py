"""In-memory implementation of the history store."""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .listeners import ErrorCallback, ListenerHub, MonotonicClock, Subscription, UpdateCallback
from .models import StoredDocument
from .repository import HistoryStore


class InMemoryHistoryStore(HistoryStore):
    """Store history in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._collections: Dict[str, List[StoredDocument]] = defaultdict(list)
        self._clock = MonotonicClock(clock)
        self._hub = ListenerHub()

    # ------------------------------------------------------------------
    async def append(self, collection_key: str, record: dict[str, Any]) -> StoredDocument:
        document = StoredDocument(
            id=uuid.uuid4().hex, created_at=self._clock(), data=dict(record)
        )
        self._collections[collection_key].append(document)
        await self._hub.publish(collection_key, lambda: self.list_documents(collection_key))
        return document

    def close(self) -> None:
        pass

    async def list_documents(self, collection_key: str) -> list[StoredDocument]:
        return [doc.model_copy(deep=True) for doc in self._collections.get(collection_key, [])]

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
