"""tether clear -- delete a session."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def clear(ctx: click.Context, session_id: str, yes: bool) -> None:
    """Delete every checkpoint of SESSION_ID."""
    from tether.cli import _store_session
    from tether.cli.formatting import format_error

    if not yes:
        click.confirm(f"Delete all checkpoints of {session_id}?", abort=True)

    with _store_session(ctx) as (store, console):
        removed = store.delete(session_id)
        if removed == 0:
            format_error(f"Session not found: {session_id}", console)
            raise SystemExit(1)
        console.print(f"Deleted {removed} checkpoints of [yellow]{session_id}[/yellow]")
