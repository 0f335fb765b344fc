"""Backoff and retry coordinator tests."""

import asyncio

import pytest

from revintel.builder import RequestBuilder
from revintel.constants import MAX_RETRIES
from revintel.contracts import WorkflowKind
from revintel.coordinator import RetryCoordinator
from revintel.errors import ExhaustedError, MalformedResponseError, RunSupersededError, ServiceError
from revintel.invoke import CompletionInvoker
from revintel.transports import InMemoryTransport
from revintel.utils.retry import CancellationToken, compute_backoff, schedule_retry

LEADS_PAYLOAD = {
    "painPoints": ["a", "b", "c"],
    "targetAudience": "SMB founders",
    "quickWins": ["x", "y", "z"],
}


class RecordingSleep:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _coordinator(transport, sleep=None, **kwargs):
    sleep = sleep or RecordingSleep()
    invoker = CompletionInvoker(transport, delay_range=(0, 0), sleep=sleep)
    return RetryCoordinator(invoker, sleep=sleep, **kwargs), sleep


def _spec():
    return RequestBuilder().build(WorkflowKind.LEADS, "https://blog.example.com/post")


def test_compute_backoff_growth():
    assert compute_backoff(1) == 2
    assert compute_backoff(2) == 4
    assert compute_backoff(3) == 8
    assert compute_backoff(2, scale=0.5) == 2


@pytest.mark.asyncio
async def test_first_attempt_success():
    transport = InMemoryTransport([LEADS_PAYLOAD])
    coordinator, sleep = _coordinator(transport)

    outcome = await coordinator.run(_spec())

    assert outcome.attempts == 1
    assert outcome.result == LEADS_PAYLOAD
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_recovers_after_failures():
    transport = InMemoryTransport(
        [ServiceError("boom"), MalformedResponseError("empty"), LEADS_PAYLOAD]
    )
    coordinator, sleep = _coordinator(transport)

    outcome = await coordinator.run(_spec())

    assert outcome.attempts == 3
    assert sleep.delays == [2, 4]


@pytest.mark.asyncio
async def test_exhausted_after_max_retries():
    transport = InMemoryTransport([ServiceError("quota exceeded")])
    coordinator, sleep = _coordinator(transport)

    with pytest.raises(ExhaustedError) as exc_info:
        await coordinator.run(_spec())

    assert str(exc_info.value) == "Failed after 3 attempts. Error: quota exceeded."
    assert exc_info.value.attempts == MAX_RETRIES
    assert transport.calls == MAX_RETRIES
    assert sleep.delays == [2, 4]


@pytest.mark.asyncio
async def test_same_request_reused_on_every_attempt():
    transport = InMemoryTransport([ServiceError("a"), ServiceError("b"), LEADS_PAYLOAD])
    coordinator, _ = _coordinator(transport)
    spec = _spec()

    await coordinator.run(spec)

    assert all(request is spec for request in transport.requests)


@pytest.mark.asyncio
async def test_attempt_listener_sees_each_attempt():
    transport = InMemoryTransport([ServiceError("a"), LEADS_PAYLOAD])
    coordinator, _ = _coordinator(transport)
    seen = []

    await coordinator.run(_spec(), on_attempt=seen.append)

    assert [state.attempt for state in seen] == [1, 2]
    assert seen[1].last_error == "a"
    assert seen[1].backoff_elapsed == 2
    assert all(state.max_attempts == MAX_RETRIES for state in seen)


@pytest.mark.asyncio
async def test_base_delay_scales_backoff():
    transport = InMemoryTransport([ServiceError("x")])
    coordinator, sleep = _coordinator(transport, base_delay=0.01)

    with pytest.raises(ExhaustedError):
        await coordinator.run(_spec())
    assert sleep.delays == [0.02, 0.04]


@pytest.mark.asyncio
async def test_unexpected_errors_are_not_retried():
    transport = InMemoryTransport([RuntimeError("bug")])
    coordinator, _ = _coordinator(transport)

    with pytest.raises(RuntimeError):
        await coordinator.run(_spec())
    assert transport.calls == 1


@pytest.mark.asyncio
async def test_cancelled_before_first_attempt():
    transport = InMemoryTransport([LEADS_PAYLOAD])
    coordinator, _ = _coordinator(transport)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(RunSupersededError):
        await coordinator.run(_spec(), cancel=token)
    assert transport.calls == 0


@pytest.mark.asyncio
async def test_cancel_interrupts_backoff():
    token = CancellationToken()

    async def blocking_sleep(delay: float) -> None:
        token.cancel()
        await asyncio.Event().wait()

    transport = InMemoryTransport([ServiceError("boom")])
    coordinator, _ = _coordinator(transport, sleep=blocking_sleep)

    with pytest.raises(RunSupersededError):
        await asyncio.wait_for(coordinator.run(_spec(), cancel=token), timeout=5)
    assert transport.calls == 1


@pytest.mark.asyncio
async def test_schedule_retry_without_token():
    sleep = RecordingSleep()
    await schedule_retry(3, sleep=sleep)
    assert sleep.delays == [3]


@pytest.mark.asyncio
async def test_schedule_retry_completes_when_not_cancelled():
    sleep = RecordingSleep()
    await schedule_retry(0.5, cancel=CancellationToken(), sleep=sleep)
    assert sleep.delays == [0.5]
