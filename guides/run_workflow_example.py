"""Example running a workflow and following the history it produces."""

import asyncio
import sys

from revintel import WorkflowOrchestrator, load_config
from revintel.identity import AnonymousIdentityProvider


async def main():
    kind = sys.argv[1] if len(sys.argv) > 1 else "price"
    raw_input = sys.argv[2] if len(sys.argv) > 2 else ""

    config = load_config()
    identity = await AnonymousIdentityProvider().resolve()

    async with WorkflowOrchestrator(config) as orchestrator:
        subscription = await orchestrator.subscribe_history(
            identity, lambda entries: print(f"History now holds {len(entries)} analyses")
        )
        orchestrator.progress.watch(
            lambda snapshot: print(f"{snapshot.state}: attempt {snapshot.attempt}")
        )

        outcome = await orchestrator.run_workflow(kind, raw_input, identity)
        if outcome.ok:
            print(outcome.result.model_dump_json(by_alias=True, indent=2))
        else:
            print(f"Run failed: {outcome.message}")

        subscription.unsubscribe()


if __name__ == "__main__":
    asyncio.run(main())
