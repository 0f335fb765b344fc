"""In-process change notification for history stores."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, Optional

from .models import StoredDocument

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[list[StoredDocument]], None]
ErrorCallback = Callable[[Exception], None]
Fetch = Callable[[], Awaitable[list[StoredDocument]]]


class Subscription:
    """Handle for a live listener. Calling it is the same as ``unsubscribe()``."""

    def __init__(self, on_cancel: Optional[Callable[[], None]] = None) -> None:
        self._on_cancel = on_cancel
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self._on_cancel is not None:
            self._on_cancel()

    def __call__(self) -> None:
        self.unsubscribe()


class ListenerHub:
    """Registry of collection listeners shared by the store backends."""

    def __init__(self) -> None:
        self._listeners: Dict[
            str, Dict[int, tuple[Subscription, UpdateCallback, Optional[ErrorCallback]]]
        ] = defaultdict(dict)
        self._next_id = 0

    def listener_count(self, collection_key: str) -> int:
        return len(self._listeners.get(collection_key, {}))

    def add(
        self,
        collection_key: str,
        on_update: UpdateCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        self._next_id += 1
        listener_id = self._next_id

        def _remove() -> None:
            listeners = self._listeners.get(collection_key)
            if listeners is not None:
                listeners.pop(listener_id, None)
                if not listeners:
                    self._listeners.pop(collection_key, None)

        subscription = Subscription(_remove)
        self._listeners[collection_key][listener_id] = (subscription, on_update, on_error)
        return subscription

    async def subscribe(
        self,
        collection_key: str,
        on_update: UpdateCallback,
        on_error: Optional[ErrorCallback],
        fetch: Fetch,
    ) -> Subscription:
        """Register a listener and deliver the current snapshot to it."""
        subscription = self.add(collection_key, on_update, on_error)
        await self._deliver(collection_key, [(subscription, on_update, on_error)], fetch)
        return subscription

    async def publish(self, collection_key: str, fetch: Fetch) -> None:
        """Deliver a fresh snapshot to every listener of ``collection_key``."""
        listeners = list(self._listeners.get(collection_key, {}).values())
        if listeners:
            await self._deliver(collection_key, listeners, fetch)

    async def _deliver(self, collection_key, listeners, fetch: Fetch) -> None:
        try:
            documents = await fetch()
        except Exception as e:
            logger.error(f"Failed to read {collection_key} for listeners: {e}")
            for subscription, _, on_error in listeners:
                if subscription.active and on_error is not None:
                    on_error(e)
            return

        for subscription, on_update, _ in listeners:
            if not subscription.active:
                continue
            try:
                on_update(list(documents))
            except Exception:
                logger.exception(f"History listener for {collection_key} raised")


class MonotonicClock:
    """UTC clock that never returns the same instant twice."""

    def __init__(self, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None

    def __call__(self) -> datetime:
        current = self._now()
        if self._last is not None and current <= self._last:
            current = self._last + timedelta(microseconds=1)
        self._last = current
        return current
