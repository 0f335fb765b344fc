"""Command line interface for running workflows and browsing history."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from revintel import WorkflowKind, WorkflowOrchestrator, load_config
from revintel.config import RevintelConfig
from revintel.contracts import RunOutcome, RunSuccess
from revintel.history import HistorySubscriber
from revintel.identity import identity_provider_for
from revintel.orchestrator import ProgressSnapshot
from revintel.persistence import HistoryEntry, get_history_store

app = typer.Typer(help="CLI for revintel workflows")

# Command groups
history_app = typer.Typer(help="Commands for browsing analysis history")

app.add_typer(history_app, name="history")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", help="Path to a YAML config file (default: config.yaml)"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level, overrides the config file"
    ),
) -> None:
    """revintel CLI entry point."""
    settings = load_config(str(config) if config else None)
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = settings


def _settings(ctx: typer.Context) -> RevintelConfig:
    return ctx.obj if isinstance(ctx.obj, RevintelConfig) else load_config()


def _format_entry(entry: HistoryEntry) -> str:
    created = entry.created_at.strftime("%Y-%m-%d %H:%M:%S") if entry.created_at else "pending"
    return f"{created}\t{entry.workflow.value}\t{entry.input or '-'}"


@app.command("workflows")
def workflows_list() -> None:
    """List the available workflows."""
    for kind in WorkflowKind:
        mode = "simulated" if kind.is_simulated else "ai"
        needs = "input required" if kind.requires_input else "no input"
        typer.echo(f"{kind.value}\t{kind.display_name}\t{mode}\t{needs}")


async def _run_workflow(
    config: RevintelConfig, kind: WorkflowKind, raw_input: str, identity: Optional[str]
) -> RunOutcome:
    resolved = await identity_provider_for(identity or config.identity).resolve()

    def _echo_progress(snapshot: ProgressSnapshot) -> None:
        if snapshot.state == "running" and snapshot.attempt:
            typer.echo(f"Attempt {snapshot.attempt}/{snapshot.max_attempts}...")

    async with WorkflowOrchestrator(config) as orchestrator:
        orchestrator.progress.watch(_echo_progress)
        return await orchestrator.run_workflow(kind, raw_input, resolved)


@app.command("run")
def workflow_run(
    ctx: typer.Context,
    kind: WorkflowKind,
    raw_input: str = typer.Argument("", help="URL, domain, campaign or idea to analyze"),
    identity: Optional[str] = typer.Option(
        None, help="Identity to record the analysis under (default: anonymous)"
    ),
) -> None:
    """
    Run one workflow and print its result as JSON.

    Example:
        revintel run leads https://blog.example.com/post --identity alice
        revintel run price
    """
    outcome = asyncio.run(_run_workflow(_settings(ctx), kind, raw_input, identity))
    if not isinstance(outcome, RunSuccess):
        typer.secho(outcome.message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(outcome.result.model_dump(by_alias=True, mode="json"), indent=2))
    typer.echo(f"Completed in {outcome.attempts} attempt(s)")


def _require_identity(config: RevintelConfig, identity: Optional[str]) -> str:
    identity = identity or config.identity
    if not identity:
        typer.secho(
            "An identity is required (--identity or REVINTEL_IDENTITY)",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    return identity


@history_app.command("list")
def history_list(
    ctx: typer.Context,
    identity: Optional[str] = typer.Option(None, help="Identity whose history to show"),
) -> None:
    """
    List recorded analyses, newest first.

    Example:
        revintel history list --identity alice
        # Output: 2025-01-01 10:00:00    leads    https://blog.example.com/post
    """
    config = _settings(ctx)
    identity = _require_identity(config, identity)
    store = get_history_store(config=config)
    try:
        subscriber = HistorySubscriber(store, config.history.app_id)
        entries = asyncio.run(subscriber.list_entries(identity))
    finally:
        store.close()
    if not entries:
        typer.echo("No analyses found")
        return
    for entry in entries:
        typer.echo(_format_entry(entry))


async def _watch_history(
    config: RevintelConfig, identity: str, lifespan: Optional[float]
) -> None:
    store = get_history_store(config=config)
    subscriber = HistorySubscriber(store, config.history.app_id)
    try:
        async for entries in subscriber.watch(identity, lifespan=lifespan):
            typer.echo(f"-- {len(entries)} analyses")
            for entry in entries:
                typer.echo(_format_entry(entry))
    finally:
        store.close()


@history_app.command("watch")
def history_watch(
    ctx: typer.Context,
    identity: Optional[str] = typer.Option(None, help="Identity whose history to follow"),
    lifespan: Optional[float] = typer.Option(
        None, help="Stop watching after this many seconds (default: run indefinitely)"
    ),
) -> None:
    """Print the history now and again whenever it changes."""
    config = _settings(ctx)
    identity = _require_identity(config, identity)
    asyncio.run(_watch_history(config, identity, lifespan))


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
