"""tether reset -- clear a session's review gate."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.pass_context
def reset(ctx: click.Context, session_id: str) -> None:
    """Drop any pending review of SESSION_ID and mark it reset.

    The conversation and task list are kept; gated tool calls are not run.
    """
    from tether.cli import _store_session
    from tether.orchestrator import Orchestrator

    with _store_session(ctx) as (store, console):
        # No model call happens on reset.
        orchestrator = Orchestrator(llm=None, store=store)  # type: ignore[arg-type]
        current = orchestrator.reset(session_id)
        console.print(f"Session [yellow]{current.session_id}[/yellow] reset")
