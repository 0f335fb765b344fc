"""Recording and live reading of per-identity workflow history."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Iterable, Optional

from pydantic import ValidationError

from .constants import DEFAULT_APP_ID
from .contracts import NormalizedResult, WorkflowKind
from .errors import PersistenceError
from .persistence import HistoryEntry, HistoryStore, StoredDocument, Subscription
from .persistence import history_collection_key

logger = logging.getLogger(__name__)

HistoryCallback = Callable[[list[HistoryEntry]], None]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class HistoryRecorder:
    """Append successful runs to the history store.

    Recording is best-effort: failures are logged and never raised, since the
    caller already holds the result.
    """

    def __init__(self, store: HistoryStore, app_id: str = DEFAULT_APP_ID) -> None:
        self._store = store
        self.app_id = app_id

    async def record(
        self,
        identity: Optional[str],
        kind: WorkflowKind,
        raw_input: str,
        result: NormalizedResult,
    ) -> Optional[StoredDocument]:
        if not identity:
            logger.warning("Identity not ready. Cannot save analysis.")
            return None

        record = {
            "workflow": kind.value,
            "input": raw_input,
            "output": result.model_dump(by_alias=True, mode="json"),
        }
        key = history_collection_key(self.app_id, identity)
        try:
            document = await self._store.append(key, record)
        except Exception as e:
            error = e if isinstance(e, PersistenceError) else PersistenceError(str(e))
            logger.error(f"Error saving analysis to {key}: {error}", exc_info=e)
            return None

        logger.info(f"Analysis {document.id} saved for {kind.value}")
        return document


def to_entries(documents: Iterable[StoredDocument]) -> list[HistoryEntry]:
    """Convert store documents to entries, newest first.

    Documents without a workflow or input, or that fail validation, are
    skipped. Documents still waiting for a timestamp sort last.
    """
    entries: list[HistoryEntry] = []
    for doc in documents:
        data = doc.data
        if not data.get("workflow") or "input" not in data:
            continue
        try:
            entries.append(
                HistoryEntry(
                    id=doc.id,
                    workflow=data["workflow"],
                    input=data["input"],
                    output=data.get("output") or {},
                    created_at=doc.created_at,
                )
            )
        except ValidationError:
            logger.debug(f"Skipping malformed history document {doc.id}")
    entries.sort(key=_sort_key, reverse=True)
    return entries


def _sort_key(entry: HistoryEntry) -> datetime:
    created = entry.created_at
    if created is None:
        return _EPOCH
    if created.tzinfo is None:
        return created.replace(tzinfo=timezone.utc)
    return created


class HistorySubscriber:
    """Maintain a live, newest-first view of an identity's history."""

    def __init__(self, store: HistoryStore, app_id: str = DEFAULT_APP_ID) -> None:
        self._store = store
        self.app_id = app_id

    async def subscribe(self, identity: str, on_update: HistoryCallback) -> Subscription:
        """Call ``on_update`` with the full entry list now and on every change.

        Listen errors are logged and reported as an empty list.
        """
        key = history_collection_key(self.app_id, identity)

        def _on_documents(documents: list[StoredDocument]) -> None:
            on_update(to_entries(documents))

        def _on_error(error: Exception) -> None:
            logger.error(f"History listen error for {key}: {error}")
            on_update([])

        return await self._store.subscribe(key, _on_documents, _on_error)

    async def list_entries(self, identity: str) -> list[HistoryEntry]:
        key = history_collection_key(self.app_id, identity)
        return to_entries(await self._store.list_documents(key))

    async def watch(
        self, identity: str, lifespan: Optional[float] = None
    ) -> AsyncIterator[list[HistoryEntry]]:
        """Yield the entry list on subscribe and after every change.

        Args:
            identity: Identity whose history to follow.
            lifespan: Maximum time in seconds to keep watching. If None, runs indefinitely.
        """
        queue: asyncio.Queue[list[HistoryEntry]] = asyncio.Queue()
        subscription = await self.subscribe(identity, queue.put_nowait)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + lifespan if lifespan is not None else None
        try:
            while True:
                if deadline is None:
                    yield await queue.get()
                    continue
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    yield await asyncio.wait_for(queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
        finally:
            subscription.unsubscribe()
