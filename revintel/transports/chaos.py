"""Fault-injecting transport decorator."""

from __future__ import annotations

import logging
import random
from typing import Optional

from ..builder import AiRequest
from ..errors import ServiceError
from .base import CompletionTransport

logger = logging.getLogger(__name__)


class ChaosTransport(CompletionTransport):
    """Fail a fraction of calls before they reach the wrapped transport.

    Used to exercise retry handling in demos. A ``failure_rate`` of ``0``
    makes the decorator transparent.
    """

    def __init__(
        self,
        inner: CompletionTransport,
        failure_rate: float = 0.1,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {failure_rate}")
        self.inner = inner
        self.failure_rate = failure_rate
        self._rng = rng or random.Random()

    async def connect(self) -> None:
        await self.inner.connect()

    async def disconnect(self) -> None:
        await self.inner.disconnect()

    async def complete(self, request: AiRequest) -> Optional[str]:
        if self._rng.random() < self.failure_rate:
            logger.debug(f"Injecting transient failure for {request.kind.value}")
            raise ServiceError(
                f"Transient network or scraping error during "
                f"{request.kind.display_name} analysis."
            )
        return await self.inner.complete(request)
