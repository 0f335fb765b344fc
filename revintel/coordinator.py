"""Retry coordination around the completion invoker."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .builder import RequestSpec
from .constants import MAX_RETRIES
from .contracts import AttemptState, RawResult
from .errors import CompletionError, ExhaustedError
from .invoke import CompletionInvoker
from .utils.retry import CancellationToken, Sleep, compute_backoff, schedule_retry

logger = logging.getLogger(__name__)

AttemptListener = Callable[[AttemptState], None]


@dataclass(frozen=True)
class RetryResult:
    """Raw result together with the number of attempts it took."""

    result: RawResult
    attempts: int


class RetryCoordinator:
    """Run the invoker with a fixed retry budget and exponential backoff.

    Attempt ``n`` that fails (for ``n < max_retries``) is followed by a wait of
    ``2**n * base_delay`` seconds. The same request spec is reused on every
    attempt.
    """

    def __init__(
        self,
        invoker: CompletionInvoker,
        max_retries: int = MAX_RETRIES,
        base_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._invoker = invoker
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep

    async def run(
        self,
        spec: RequestSpec,
        on_attempt: Optional[AttemptListener] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> RetryResult:
        """Return the first successful result.

        Raises:
            ExhaustedError: Every attempt failed.
            RunSupersededError: ``cancel`` fired before an attempt or during backoff.
        """
        state = AttemptState(max_attempts=self.max_retries)

        for attempt in range(1, self.max_retries + 1):
            if cancel is not None:
                cancel.raise_if_cancelled()
            state.attempt = attempt
            if on_attempt is not None:
                on_attempt(state.model_copy())

            try:
                result = await self._invoker.invoke(spec)
            except CompletionError as e:
                state.last_error = str(e) or type(e).__name__
            else:
                logger.debug(f"{spec.kind.value} succeeded on attempt {attempt}")
                return RetryResult(result=result, attempts=attempt)

            if attempt == self.max_retries:
                break

            delay = compute_backoff(attempt, scale=self.base_delay)
            logger.warning(
                f"Attempt {attempt} failed for {spec.kind.value}: {state.last_error}. "
                f"Retrying in {delay:g}s..."
            )
            await schedule_retry(delay, cancel=cancel, sleep=self._sleep)
            state.backoff_elapsed += delay

        logger.error(
            f"{spec.kind.value} failed after {self.max_retries} attempts: {state.last_error}"
        )
        raise ExhaustedError(self.max_retries, state.last_error)
