"""Top-level coordinator for workflow runs."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, List, Literal, Optional, Union

from pydantic import BaseModel

from .builder import RequestBuilder
from .config import RevintelConfig
from .constants import MAX_RETRIES
from .contracts import AttemptState, RunFailure, RunOutcome, RunSuccess, WorkflowKind
from .coordinator import RetryCoordinator
from .errors import ExhaustedError, RunSupersededError, RunValidationError
from .history import HistoryCallback, HistoryRecorder, HistorySubscriber
from .invoke import CompletionInvoker
from .normalize import ResultNormalizer
from .persistence import HistoryEntry, HistoryStore, Subscription, get_history_store
from .transports import CompletionTransport, get_transport
from .utils.retry import CancellationToken, Sleep

logger = logging.getLogger(__name__)

MISSING_INPUT_MESSAGE = "Please enter a valid input (URL, Domain, or Idea)."
IDENTITY_NOT_READY_MESSAGE = "Authentication is not ready. Please wait a moment."


class ProgressSnapshot(BaseModel):
    """Observable state of the most recent run."""

    generation: int = 0
    kind: Optional[WorkflowKind] = None
    state: Literal["idle", "running", "success", "failure"] = "idle"
    attempt: int = 0
    max_attempts: int = MAX_RETRIES
    error: Optional[str] = None


ProgressListener = Callable[[ProgressSnapshot], None]


class RunProgress:
    """Progress of the current run, ignoring updates from superseded runs."""

    def __init__(self) -> None:
        self._snapshot = ProgressSnapshot()
        self._listeners: List[ProgressListener] = []

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._snapshot

    @property
    def attempt(self) -> int:
        return self._snapshot.attempt

    @property
    def state(self) -> str:
        return self._snapshot.state

    @property
    def error(self) -> Optional[str]:
        return self._snapshot.error

    def watch(self, listener: ProgressListener) -> Callable[[], None]:
        """Register ``listener``; returns a function that removes it."""
        self._listeners.append(listener)

        def _unwatch() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unwatch

    def start(self, generation: int, kind: WorkflowKind) -> None:
        self._snapshot = ProgressSnapshot(generation=generation, kind=kind, state="running")
        self._notify()

    def update(self, generation: int, **changes) -> bool:
        """Apply ``changes`` if ``generation`` is still current."""
        if generation != self._snapshot.generation:
            return False
        self._snapshot = self._snapshot.model_copy(update=changes)
        self._notify()
        return True

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._snapshot)


class WorkflowOrchestrator:
    """Run workflows end to end and expose their history.

    Collaborators default to the ones described by ``config``; pass
    ``transport`` or ``store`` to substitute them. ``rng`` and ``sleep`` make
    simulations and backoff waits deterministic in tests.
    """

    def __init__(
        self,
        config: Optional[RevintelConfig] = None,
        transport: Optional[CompletionTransport] = None,
        store: Optional[HistoryStore] = None,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config or RevintelConfig()
        self.transport = transport or get_transport(config=self.config, rng=rng)
        self._owns_store = store is None
        self.store = store or get_history_store(config=self.config)

        simulation = self.config.simulation
        self.builder = RequestBuilder()
        self.invoker = CompletionInvoker(
            self.transport,
            rng=rng,
            delay_range=(simulation.min_delay, simulation.max_delay),
            sleep=sleep,
        )
        self.coordinator = RetryCoordinator(
            self.invoker, base_delay=self.config.retry.base_delay, sleep=sleep
        )
        self.normalizer = ResultNormalizer()
        self.recorder = HistoryRecorder(self.store, app_id=self.config.history.app_id)
        self.subscriber = HistorySubscriber(self.store, app_id=self.config.history.app_id)

        self.progress = RunProgress()
        self._generation = 0
        self._cancel: Optional[CancellationToken] = None

    async def __aenter__(self) -> "WorkflowOrchestrator":
        await self.transport.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        """Disconnect the transport and close the store if it was created here."""
        await self.transport.disconnect()
        if self._owns_store:
            self.store.close()

    # ------------------------------------------------------------------
    def _begin_run(self, kind: WorkflowKind) -> tuple[int, CancellationToken]:
        if self._cancel is not None:
            self._cancel.cancel()
        self._generation += 1
        self._cancel = CancellationToken()
        self.progress.start(self._generation, kind)
        return self._generation, self._cancel

    def _fail(
        self,
        generation: int,
        message: str,
        reason: Literal["validation", "exhausted", "superseded"],
    ) -> RunFailure:
        self.progress.update(generation, state="failure", error=message)
        return RunFailure(message=message, reason=reason)

    async def run_workflow(
        self,
        kind: Union[WorkflowKind, str],
        raw_input: Optional[str],
        identity: Optional[str],
    ) -> RunOutcome:
        """Execute one workflow run.

        Starting a run supersedes any run still in flight: the older run stops
        at its next backoff wait and its progress updates are ignored.
        """
        kind = WorkflowKind(kind)
        raw_input = (raw_input or "").strip()

        # Rejected calls leave the run in flight and its progress untouched.
        if kind.requires_input and not raw_input:
            logger.warning(f"Rejected {kind.value} run: missing input")
            return RunFailure(message=MISSING_INPUT_MESSAGE, reason="validation")
        if not identity:
            logger.warning(f"Rejected {kind.value} run: identity not ready")
            return RunFailure(message=IDENTITY_NOT_READY_MESSAGE, reason="validation")

        generation, cancel = self._begin_run(kind)

        def _on_attempt(state: AttemptState) -> None:
            self.progress.update(
                generation, attempt=state.attempt, max_attempts=state.max_attempts
            )

        try:
            spec = self.builder.build(kind, raw_input)
            outcome = await self.coordinator.run(spec, on_attempt=_on_attempt, cancel=cancel)
        except RunValidationError as e:
            return self._fail(generation, str(e), "validation")
        except ExhaustedError as e:
            return self._fail(generation, str(e), "exhausted")
        except RunSupersededError as e:
            logger.info(f"{kind.value} run {generation} superseded")
            return RunFailure(message=str(e), reason="superseded")

        result = self.normalizer.normalize(kind, raw_input, outcome.result)
        await self.recorder.record(identity, kind, raw_input, result)

        self.progress.update(generation, state="success", attempt=outcome.attempts)
        logger.info(
            f"{kind.value} run {generation} succeeded after {outcome.attempts} attempt(s)"
        )
        return RunSuccess(result=result, attempts=outcome.attempts)

    # ------------------------------------------------------------------
    async def subscribe_history(
        self, identity: str, on_update: HistoryCallback
    ) -> Subscription:
        """Follow ``identity``'s history, newest first, until unsubscribed."""
        if not identity:
            raise RunValidationError(IDENTITY_NOT_READY_MESSAGE)
        return await self.subscriber.subscribe(identity, on_update)

    async def list_history(self, identity: str) -> list[HistoryEntry]:
        if not identity:
            raise RunValidationError(IDENTITY_NOT_READY_MESSAGE)
        return await self.subscriber.list_entries(identity)
