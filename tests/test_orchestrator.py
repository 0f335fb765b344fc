import asyncio
import random
import sqlite3

import pytest

from revintel import WorkflowOrchestrator
from revintel.config import RetryConfig, RevintelConfig, SimulationConfig
from revintel.contracts import WorkflowKind
from revintel.errors import PersistenceError, RunValidationError, ServiceError
from revintel.orchestrator import IDENTITY_NOT_READY_MESSAGE, MISSING_INPUT_MESSAGE
from revintel.persistence import InMemoryHistoryStore, SQLiteHistoryStore
from revintel.transports import InMemoryTransport

IDENTITY = "user-1"

LEADS_PAYLOAD = {
    "painPoints": ["No clear CTA", "Thin examples", "No pricing context"],
    "targetAudience": "Ops leaders at 50-200 person SaaS companies",
    "quickWins": ["Add a checklist download", "Inline demo form", "Case study link"],
    "monthlyTraffic": 10000,
}
SEO_PAYLOAD = {
    "gapKeywords": [
        {"keyword": "ai forecasting", "volume": 2400, "difficulty": 6.1},
        {"keyword": "pipeline analytics", "volume": 1300, "difficulty": 4.8},
    ],
    "contentStrategy": "Own 'ai forecasting' with a benchmark report.",
}
EMAIL_PAYLOAD = {
    "subjectLineImprovement": "Your Q3 numbers, explained in 2 minutes",
    "abTestSuggestions": ["Personalized sender", "Shorter preheader", "Single CTA"],
}
AI_PAYLOADS = {
    WorkflowKind.LEADS: LEADS_PAYLOAD,
    WorkflowKind.SEO: SEO_PAYLOAD,
    WorkflowKind.EMAIL: EMAIL_PAYLOAD,
}


class RecordingSleep:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class BlockingSleep:
    """Records backoff waits and never finishes them on its own."""

    def __init__(self) -> None:
        self.delays = []
        self.waiting = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.waiting.set()
        await asyncio.Event().wait()


class BrokenStore(InMemoryHistoryStore):
    async def append(self, collection_key, record):
        raise PersistenceError("write rejected")


def _config() -> RevintelConfig:
    return RevintelConfig(simulation=SimulationConfig(min_delay=0, max_delay=0))


def _orchestrator(responses=(), store=None, sleep=None, config=None):
    transport = InMemoryTransport(responses)
    store = store or InMemoryHistoryStore()
    sleep = sleep or RecordingSleep()
    orchestrator = WorkflowOrchestrator(
        config or _config(),
        transport=transport,
        store=store,
        rng=random.Random(7),
        sleep=sleep,
    )
    return orchestrator, transport, store, sleep


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", list(AI_PAYLOADS))
async def test_ai_workflow_succeeds_first_attempt(kind):
    orchestrator, transport, _, sleep = _orchestrator([AI_PAYLOADS[kind]])

    outcome = await orchestrator.run_workflow(kind, "rival.io", IDENTITY)

    assert outcome.ok is True
    assert outcome.attempts == 1
    assert outcome.result.kind is kind
    assert outcome.result.status == "Success"
    assert transport.calls == 1
    assert sleep.delays == []
    assert orchestrator.progress.state == "success"


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [WorkflowKind.PRICE, WorkflowKind.REVIEW, WorkflowKind.SOCIAL])
async def test_simulated_workflow_never_calls_service(kind):
    orchestrator, transport, _, _ = _orchestrator()

    outcome = await orchestrator.run_workflow(kind, "product-a", IDENTITY)

    assert outcome.ok is True
    assert outcome.result.kind is kind
    assert outcome.result.status == "Success"
    assert transport.calls == 0


@pytest.mark.asyncio
async def test_leads_revenue_estimate_end_to_end():
    orchestrator, _, store, _ = _orchestrator([LEADS_PAYLOAD])

    outcome = await orchestrator.run_workflow(
        "leads", "https://blog.example.com/post", IDENTITY
    )

    assert outcome.ok is True
    dumped = outcome.result.model_dump(by_alias=True, mode="json")
    assert dumped["revenueEstimate"] == {
        "monthlyTraffic": 10000,
        "conversionRate": "3%",
        "leadsPerMonth": 300,
        "avgLeadValue": "$75",
        "monthlyRevenue": "$22,500",
    }
    [entry] = await orchestrator.list_history(IDENTITY)
    assert entry.workflow is WorkflowKind.LEADS
    assert entry.input == "https://blog.example.com/post"
    assert entry.output == dumped


@pytest.mark.asyncio
async def test_retries_then_succeeds():
    orchestrator, transport, _, sleep = _orchestrator(
        [ServiceError("quota exceeded"), "not json", LEADS_PAYLOAD]
    )

    outcome = await orchestrator.run_workflow(WorkflowKind.LEADS, "topic", IDENTITY)

    assert outcome.ok is True
    assert outcome.attempts == 3
    assert transport.calls == 3
    assert sleep.delays == [2.0, 4.0]


@pytest.mark.asyncio
async def test_exhausted_after_three_attempts():
    orchestrator, transport, store, sleep = _orchestrator([ServiceError("quota exceeded")])

    outcome = await orchestrator.run_workflow(WorkflowKind.SEO, "rival.io", IDENTITY)

    assert outcome.ok is False
    assert outcome.reason == "exhausted"
    assert outcome.message == "Failed after 3 attempts. Error: quota exceeded."
    assert transport.calls == 3
    assert sleep.delays == [2.0, 4.0]
    assert await orchestrator.list_history(IDENTITY) == []
    assert orchestrator.progress.state == "failure"
    assert orchestrator.progress.error == outcome.message


@pytest.mark.asyncio
async def test_progress_reports_each_attempt():
    orchestrator, _, _, _ = _orchestrator([ServiceError("down")])
    seen = []
    orchestrator.progress.watch(lambda s: seen.append((s.state, s.attempt)))

    await orchestrator.run_workflow(WorkflowKind.EMAIL, "Spring launch", IDENTITY)

    assert seen == [
        ("running", 0),
        ("running", 1),
        ("running", 2),
        ("running", 3),
        ("failure", 3),
    ]


@pytest.mark.asyncio
async def test_persistence_failure_still_succeeds():
    orchestrator, _, _, _ = _orchestrator([EMAIL_PAYLOAD], store=BrokenStore())

    outcome = await orchestrator.run_workflow(WorkflowKind.EMAIL, "Spring launch", IDENTITY)

    assert outcome.ok is True
    assert outcome.result.predicted_improvement == "18% increase in Open Rate"
    assert orchestrator.progress.state == "success"


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [k for k in WorkflowKind if k is not WorkflowKind.PRICE])
@pytest.mark.parametrize("raw_input", ["", "   ", None])
async def test_missing_input_rejected(kind, raw_input):
    orchestrator, transport, _, _ = _orchestrator([AI_PAYLOADS.get(kind, {})])

    outcome = await orchestrator.run_workflow(kind, raw_input, IDENTITY)

    assert outcome.ok is False
    assert outcome.reason == "validation"
    assert outcome.message == MISSING_INPUT_MESSAGE
    assert transport.calls == 0
    assert await orchestrator.list_history(IDENTITY) == []


@pytest.mark.asyncio
async def test_price_runs_without_input():
    orchestrator, _, _, _ = _orchestrator()

    outcome = await orchestrator.run_workflow(WorkflowKind.PRICE, "", IDENTITY)

    assert outcome.ok is True
    assert outcome.result.alert_level in {"CRITICAL", "OPPORTUNITY", "NORMAL"}
    [entry] = await orchestrator.list_history(IDENTITY)
    assert entry.input == ""


@pytest.mark.asyncio
async def test_missing_identity_rejected():
    orchestrator, transport, _, _ = _orchestrator([LEADS_PAYLOAD])

    outcome = await orchestrator.run_workflow(WorkflowKind.LEADS, "topic", None)

    assert outcome.ok is False
    assert outcome.reason == "validation"
    assert outcome.message == IDENTITY_NOT_READY_MESSAGE
    assert transport.calls == 0


@pytest.mark.asyncio
async def test_history_requires_identity():
    orchestrator, _, _, _ = _orchestrator()

    with pytest.raises(RunValidationError, match="Authentication is not ready"):
        await orchestrator.list_history("")


@pytest.mark.asyncio
async def test_newer_run_supersedes_run_in_backoff():
    sleep = BlockingSleep()
    orchestrator, transport, _, _ = _orchestrator(
        [ServiceError("flaky")], sleep=sleep
    )

    first = asyncio.create_task(
        orchestrator.run_workflow(WorkflowKind.LEADS, "topic", IDENTITY)
    )
    await asyncio.wait_for(sleep.waiting.wait(), timeout=5)

    second = await orchestrator.run_workflow(WorkflowKind.PRICE, "", IDENTITY)
    superseded = await asyncio.wait_for(first, timeout=5)

    assert second.ok is True
    assert superseded.ok is False
    assert superseded.reason == "superseded"
    assert transport.calls == 1
    snapshot = orchestrator.progress.snapshot
    assert snapshot.kind is WorkflowKind.PRICE
    assert snapshot.state == "success"
    entries = await orchestrator.list_history(IDENTITY)
    assert [e.workflow for e in entries] == [WorkflowKind.PRICE]


@pytest.mark.asyncio
async def test_subscribe_history_follows_runs():
    orchestrator, _, _, _ = _orchestrator()
    updates = []

    subscription = await orchestrator.subscribe_history(IDENTITY, updates.append)
    await orchestrator.run_workflow(WorkflowKind.PRICE, "", IDENTITY)
    await orchestrator.run_workflow(WorkflowKind.REVIEW, "product-a", IDENTITY)
    subscription.unsubscribe()
    await orchestrator.run_workflow(WorkflowKind.SOCIAL, "idea", IDENTITY)

    assert [len(u) for u in updates] == [0, 1, 2]
    assert [e.workflow for e in updates[-1]] == [WorkflowKind.REVIEW, WorkflowKind.PRICE]


@pytest.mark.asyncio
async def test_backoff_scales_with_config():
    config = _config()
    config.retry = RetryConfig(base_delay=0.5)
    orchestrator, _, _, sleep = _orchestrator([ServiceError("down")], config=config)

    await orchestrator.run_workflow(WorkflowKind.LEADS, "topic", IDENTITY)

    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_context_manager_connects_transport():
    orchestrator, _, _, _ = _orchestrator()
    async with orchestrator as running:
        outcome = await running.run_workflow(WorkflowKind.PRICE, "", IDENTITY)
    assert outcome.ok is True


class GatedSleep:
    """Records backoff waits and finishes them when released."""

    def __init__(self) -> None:
        self.delays = []
        self.waiting = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.waiting.set()
        await self.release.wait()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kind,raw_input,identity",
    [
        (WorkflowKind.SEO, "", IDENTITY),
        (WorkflowKind.EMAIL, "Spring launch", None),
    ],
)
async def test_rejected_run_leaves_run_in_flight(kind, raw_input, identity):
    sleep = GatedSleep()
    orchestrator, transport, _, _ = _orchestrator(
        [ServiceError("flaky"), LEADS_PAYLOAD], sleep=sleep
    )

    first = asyncio.create_task(
        orchestrator.run_workflow(WorkflowKind.LEADS, "topic", IDENTITY)
    )
    await asyncio.wait_for(sleep.waiting.wait(), timeout=5)

    rejected = await orchestrator.run_workflow(kind, raw_input, identity)
    assert rejected.reason == "validation"
    snapshot = orchestrator.progress.snapshot
    assert snapshot.kind is WorkflowKind.LEADS
    assert snapshot.state == "running"

    sleep.release.set()
    outcome = await asyncio.wait_for(first, timeout=5)

    assert outcome.ok is True
    assert outcome.attempts == 2
    assert transport.calls == 2
    assert orchestrator.progress.state == "success"
    [entry] = await orchestrator.list_history(IDENTITY)
    assert entry.workflow is WorkflowKind.LEADS


@pytest.mark.asyncio
async def test_close_releases_store_it_created(tmp_path, monkeypatch):
    monkeypatch.delenv("REVINTEL_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    config = _config()
    config.history.database_url = f"sqlite://{tmp_path / 'history.db'}"
    orchestrator = WorkflowOrchestrator(config, transport=InMemoryTransport())

    async with orchestrator:
        outcome = await orchestrator.run_workflow(WorkflowKind.PRICE, "", IDENTITY)
    assert outcome.ok is True

    assert isinstance(orchestrator.store, SQLiteHistoryStore)
    with pytest.raises(sqlite3.ProgrammingError):
        orchestrator.store._conn.execute("SELECT 1")


@pytest.mark.asyncio
async def test_close_keeps_supplied_store_open(tmp_path):
    store = SQLiteHistoryStore(tmp_path / "history.db")
    orchestrator, _, _, _ = _orchestrator(store=store)

    async with orchestrator:
        await orchestrator.run_workflow(WorkflowKind.PRICE, "", IDENTITY)

    assert len(await orchestrator.list_history(IDENTITY)) == 1
    store.close()
