"""Tether CLI -- run and inspect agent sessions from the terminal.

This module is NEVER imported from tether/__init__.py.
It is only loaded via the ``tether`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

try:
    import click
    from dotenv import load_dotenv
    from rich.logging import RichHandler
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install tether[cli]"
    ) from None

from tether.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from tether.orchestrator import Orchestrator
    from tether.storage.sqlite import SqlCheckpointStore


@click.group()
@click.option(
    "--db",
    default=".tether.db",
    envvar="TETHER_DB",
    help="Path to the checkpoint database.",
)
@click.option(
    "--workspace",
    default=".",
    envvar="TETHER_WORKSPACE",
    type=click.Path(file_okay=False),
    help="Root directory for file and shell tools.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log loop steps to stderr.")
@click.pass_context
def cli(ctx: click.Context, db: str, workspace: str, verbose: bool) -> None:
    """Tether: a resumable tool-calling agent loop."""
    load_dotenv()
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db
    ctx.obj["workspace"] = workspace
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(show_path=False)],
        )


def _open_store(ctx: click.Context) -> SqlCheckpointStore:
    from tether.storage.sqlite import SqlCheckpointStore

    return SqlCheckpointStore(db_path=ctx.obj["db_path"])


def _build_orchestrator(ctx: click.Context, store: SqlCheckpointStore) -> Orchestrator:
    """Orchestrator with the built-in tools, configured from the environment.

    ``ctx.obj["llm"]`` overrides the OpenAI client. A client created here is
    closed when the command's context is torn down.
    """
    from tether.llm.client import OpenAIClient
    from tether.orchestrator import Orchestrator, OrchestratorConfig

    llm = ctx.obj.get("llm") or ctx.with_resource(OpenAIClient())
    return Orchestrator.with_builtin_tools(
        llm,
        ctx.obj["workspace"],
        store=store,
        config=OrchestratorConfig.from_env(),
    )


@contextmanager
def _store_session(ctx: click.Context) -> Iterator[tuple[SqlCheckpointStore, Console]]:
    """Open the checkpoint store, yield (store, console), and handle cleanup.

    Ensures the store is closed on exit and formats exceptions as CLI errors.
    """
    console = get_console()
    try:
        store = _open_store(ctx)
        try:
            yield store, console
        finally:
            store.close()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


# Register subcommands after cli group is defined
from tether.cli.commands.run import run  # noqa: E402
from tether.cli.commands.resume import resume  # noqa: E402
from tether.cli.commands.state import state  # noqa: E402
from tether.cli.commands.history import history  # noqa: E402
from tether.cli.commands.sessions import sessions  # noqa: E402
from tether.cli.commands.tasks import tasks  # noqa: E402
from tether.cli.commands.reset import reset  # noqa: E402
from tether.cli.commands.clear import clear  # noqa: E402

cli.add_command(run)
cli.add_command(resume)
cli.add_command(state)
cli.add_command(history)
cli.add_command(sessions)
cli.add_command(tasks)
cli.add_command(reset)
cli.add_command(clear)
