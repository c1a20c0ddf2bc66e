"""tether resume -- answer a pending review or continue a stopped session."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.argument("answer", required=False)
@click.pass_context
def resume(ctx: click.Context, session_id: str, answer: str | None) -> None:
    """Resume SESSION_ID.

    ANSWER resolves a pending review: "approve" (or "同意") runs the gated
    tools, "reject" (or "拒绝") refuses them, anything else is passed to the
    agent as feedback. Answer with the bare keyword: matching is by
    containment, so "disapprove" or "不同意" also approve.

    Without a pending review, omit ANSWER to continue a session stopped by
    the iteration limit, an error or cancellation.
    """
    from tether.cli import _build_orchestrator, _store_session
    from tether.cli.formatting import format_run_result

    with _store_session(ctx) as (store, console):
        orchestrator = _build_orchestrator(ctx, store)
        state = orchestrator.resume(session_id, answer)
        format_run_result(state, console)
