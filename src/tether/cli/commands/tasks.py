"""tether tasks -- show the task list of a session."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.pass_context
def tasks(ctx: click.Context, session_id: str) -> None:
    """Show the task list the agent keeps for SESSION_ID."""
    from tether.cli import _store_session
    from tether.cli.formatting import format_tasks
    from tether.exceptions import SessionNotFoundError

    with _store_session(ctx) as (store, console):
        current = store.load(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)
        format_tasks(current.task_list, console)
