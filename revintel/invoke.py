"""Single-attempt completion invocation."""

from __future__ import annotations

import asyncio
import json
import logging
import random
from typing import Any, Optional

from .builder import AiRequest, RequestSpec, SimulatedRequest
from .contracts import RawResult
from .errors import MalformedResponseError, ParseError
from .simulations import SIMULATIONS
from .transports import CompletionTransport
from .utils.retry import Sleep

logger = logging.getLogger(__name__)


class CompletionInvoker:
    """Obtain one raw result for a request spec.

    AI requests go through ``transport``; simulated requests are computed in
    process after an artificial delay drawn from ``delay_range``.
    """

    def __init__(
        self,
        transport: CompletionTransport,
        rng: Optional[random.Random] = None,
        delay_range: tuple[float, float] = (1.5, 2.5),
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._rng = rng or random.Random()
        self._delay_range = delay_range
        self._sleep = sleep

    async def invoke(self, spec: RequestSpec) -> RawResult:
        if isinstance(spec, AiRequest):
            return await self._invoke_ai(spec)
        if isinstance(spec, SimulatedRequest):
            return await self._invoke_simulated(spec)
        raise TypeError(f"Unsupported request spec: {type(spec).__name__}")

    async def _invoke_ai(self, request: AiRequest) -> dict[str, Any]:
        text = await self._transport.complete(request)
        if not text or not text.strip():
            raise MalformedResponseError("Gemini returned an empty or invalid response.")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            raise ParseError(f"Gemini returned invalid JSON: {e.msg}") from e

        errors = request.output_schema.validate_payload(payload)
        if errors:
            raise ParseError(
                f"Gemini response does not match the {request.kind.value} schema: "
                + "; ".join(errors),
                errors=errors,
            )
        return payload

    async def _invoke_simulated(self, request: SimulatedRequest) -> RawResult:
        low, high = self._delay_range
        delay = low + self._rng.random() * (high - low)
        if delay > 0:
            await self._sleep(delay)
        logger.debug(f"Simulated {request.kind.value} after {delay:.2f}s")
        return SIMULATIONS[request.kind](request.raw_input, self._rng)
