"""tether history -- list every checkpoint of a session."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.pass_context
def history(ctx: click.Context, session_id: str) -> None:
    """Show the checkpoint log of SESSION_ID, oldest first."""
    from tether.cli import _store_session
    from tether.cli.formatting import format_history
    from tether.exceptions import SessionNotFoundError

    with _store_session(ctx) as (store, console):
        states = store.history(session_id)
        if not states:
            raise SessionNotFoundError(session_id)
        format_history(states, console)
