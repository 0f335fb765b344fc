"""Store abstraction for append-only workflow history."""

from __future__ import annotations

from typing import Any, Protocol

from .listeners import ErrorCallback, Subscription, UpdateCallback
from .models import StoredDocument


class HistoryStore(Protocol):
    """Protocol for history persistence backends.

    Stores are append-only: documents are never updated or deleted. The
    store assigns each document its id and creation timestamp.
    """

    async def append(self, collection_key: str, record: dict[str, Any]) -> StoredDocument:
        """Append ``record`` to the collection and return the stored document."""

    async def list_documents(self, collection_key: str) -> list[StoredDocument]:
        """Return every document in the collection, in no guaranteed order."""

    async def subscribe(
        self,
        collection_key: str,
        on_update: UpdateCallback,
        on_error: ErrorCallback | None = None,
    ) -> Subscription:
        """Deliver the collection now and after every change until unsubscribed."""

    def close(self) -> None:
        """Release the backend's resources. The store is unusable afterwards."""
