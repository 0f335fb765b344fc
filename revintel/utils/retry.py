from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from ..errors import RunSupersededError

Sleep = Callable[[float], Awaitable[Any]]


class CancellationToken:
    """Cooperative cancellation flag shared between a run and its owner."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunSupersededError("Run superseded by a newer run.")

    async def wait(self) -> None:
        await self._event.wait()


def compute_backoff(attempt: int, base: float = 2.0, scale: float = 1.0) -> float:
    """Compute exponential backoff, in seconds, after a failed ``attempt``."""
    return (base ** attempt) * scale


async def schedule_retry(
    delay: float,
    cancel: Optional[CancellationToken] = None,
    sleep: Sleep = asyncio.sleep,
) -> None:
    """Sleep for ``delay`` seconds, returning early if ``cancel`` fires.

    Raises:
        RunSupersededError: The token was cancelled before or during the wait.
    """
    if cancel is None:
        await sleep(delay)
        return

    cancel.raise_if_cancelled()
    sleeper = asyncio.ensure_future(sleep(delay))
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({sleeper, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, waiter):
            if not task.done():
                task.cancel()
    cancel.raise_if_cancelled()
    sleeper.result()
