"""tether sessions -- list stored sessions."""

from __future__ import annotations

import click


@click.command()
@click.pass_context
def sessions(ctx: click.Context) -> None:
    """List the ids of all sessions in the database."""
    from tether.cli import _store_session
    from tether.cli.formatting import format_sessions

    with _store_session(ctx) as (store, console):
        format_sessions(store.list_sessions(), console)
