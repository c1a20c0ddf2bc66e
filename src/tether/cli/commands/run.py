"""tether run -- start or continue a session with a new message."""

from __future__ import annotations

import click


@click.command()
@click.argument("prompt")
@click.option("--session", "session_id", default=None, help="Session id to continue (new session if omitted).")
@click.pass_context
def run(ctx: click.Context, prompt: str, session_id: str | None) -> None:
    """Send PROMPT to the agent and run until it finishes or needs review."""
    from tether.cli import _build_orchestrator, _store_session
    from tether.cli.formatting import format_run_result

    with _store_session(ctx) as (store, console):
        orchestrator = _build_orchestrator(ctx, store)
        state = orchestrator.invoke(prompt, session_id)
        format_run_result(state, console)
