"""Base transport interface for the completion service."""

from __future__ import annotations

import abc
from typing import Optional

from ..builder import AiRequest


class CompletionTransport(metaclass=abc.ABCMeta):
    """Abstract channel to a schema-constrained completion service."""

    async def connect(self) -> None:
        """Open any underlying connection (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Release any underlying connection (no-op by default)."""
        pass

    @abc.abstractmethod
    async def complete(self, request: AiRequest) -> Optional[str]:
        """Send ``request`` and return the generated text.

        Returns ``None`` when the service answered successfully but produced
        no text.

        Raises:
            ServiceError: The service or the network reported a failure.
        """
        raise NotImplementedError
