"""Completion transport factory and initialization."""

from __future__ import annotations

import os
import random
from typing import Optional

from ..config import RevintelConfig, load_config
from .base import CompletionTransport
from .chaos import ChaosTransport
from .inmemory import InMemoryTransport


def get_transport(
    backend: Optional[str] = None,
    config: Optional[RevintelConfig] = None,
    rng: Optional[random.Random] = None,
) -> CompletionTransport:
    """Factory function to get the configured completion transport.

    The transport is wrapped in a :class:`ChaosTransport` when
    ``completion.fault_rate`` is above zero.
    """

    config = config or load_config()
    backend = (
        backend
        or os.getenv("REVINTEL_COMPLETION_BACKEND")
        or config.completion.backend
    ).lower()

    transport: CompletionTransport
    if backend == "inmemory":
        transport = InMemoryTransport()
    elif backend == "gemini":
        from .gemini import GeminiTransport

        completion = config.completion
        transport = GeminiTransport(
            api_key=completion.api_key,
            model=completion.model,
            base_url=completion.base_url,
            timeout=completion.timeout,
        )
    else:
        raise ValueError(f"Unsupported completion backend: {backend}")

    if config.completion.fault_rate > 0:
        transport = ChaosTransport(
            transport, failure_rate=config.completion.fault_rate, rng=rng
        )
    return transport


__all__ = ["ChaosTransport", "CompletionTransport", "InMemoryTransport", "get_transport"]
