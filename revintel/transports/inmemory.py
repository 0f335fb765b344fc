"""In-memory completion transport for testing."""

from __future__ import annotations

import json
from collections import deque
from typing import Any, Deque, Iterable, List, Optional

from ..builder import AiRequest
from ..errors import ServiceError
from .base import CompletionTransport


class InMemoryTransport(CompletionTransport):
    """Replays scripted responses in order.

    Each scripted item is a string (returned as generated text), a ``dict``
    or ``list`` (returned JSON-encoded), ``None`` (no text), or an exception
    instance (raised). Once the script runs out, the last item repeats.
    """

    def __init__(self, responses: Iterable[Any] = ()) -> None:
        self._script: Deque[Any] = deque(responses)
        self._last: Any = ServiceError("No scripted completion available")
        self.requests: List[AiRequest] = []

    def push(self, *responses: Any) -> None:
        self._script.extend(responses)

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def complete(self, request: AiRequest) -> Optional[str]:
        self.requests.append(request)
        if self._script:
            self._last = self._script.popleft()
        item = self._last
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, (dict, list)):
            return json.dumps(item)
        return item
