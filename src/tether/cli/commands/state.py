"""tether state -- show the latest checkpoint of a session."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.pass_context
def state(ctx: click.Context, session_id: str) -> None:
    """Show status, token usage, tasks and any pending review of SESSION_ID."""
    from tether.cli import _store_session
    from tether.cli.formatting import format_state
    from tether.engine.tokens import TokenBudget
    from tether.exceptions import SessionNotFoundError
    from tether.orchestrator import OrchestratorConfig

    with _store_session(ctx) as (store, console):
        current = store.load(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)
        config = OrchestratorConfig.from_env()
        budget = TokenBudget(config.max_tokens, config.compression_threshold)
        format_state(current, budget.usage(current.messages), console)
