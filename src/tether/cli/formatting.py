"""Rich formatting helpers for the Tether CLI.

Provides functions that format session data for terminal display.
Rich auto-detects TTY and degrades gracefully when piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from tether.models.state import SessionStatus
from tether.models.tasks import TaskStatus
from tether.operations.tasks import task_stats

if TYPE_CHECKING:
    from tether.engine.tokens import TokenUsage
    from tether.models.state import PendingReview, SessionState
    from tether.models.tasks import Task

_STATUS_STYLES: dict[SessionStatus, str] = {
    SessionStatus.COMPLETED: "green",
    SessionStatus.AWAITING_REVIEW: "yellow",
    SessionStatus.ERROR: "red",
    SessionStatus.ITERATION_LIMIT: "red",
    SessionStatus.COMPRESSION_FAILED: "red",
    SessionStatus.CANCELLED: "dim",
}

_TASK_STYLES: dict[TaskStatus, str] = {
    TaskStatus.PENDING: "dim",
    TaskStatus.IN_PROGRESS: "cyan",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
    TaskStatus.BLOCKED: "yellow",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {message}", highlight=False)


def _status(status: SessionStatus) -> str:
    style = _STATUS_STYLES.get(status, "cyan")
    return f"[{style}]{status.value}[/{style}]"


def _usage_bar(usage: TokenUsage) -> str:
    bar_width = 30
    filled = min(int(usage.percentage * bar_width), bar_width)
    bar = "#" * filled + "-" * (bar_width - filled)
    if usage.percentage > 0.9:
        color = "red"
    elif usage.percentage > 0.7:
        color = "yellow"
    else:
        color = "green"
    return (
        f"[{color}]{usage.used}[/{color}] / {usage.total} "
        f"[{color}][{bar}][/{color}] {usage.percentage:.0%}"
    )


def format_review(review: PendingReview, session_id: str, console: Console) -> None:
    """Display a pending review and how to answer it."""
    title = "Question" if review.kind == "question" else "Approval required"
    console.print(Panel(escape(review.prompt), title=title, border_style="yellow"))
    console.print(
        f'[dim]Answer with:[/dim] tether resume {session_id} "<answer>"',
        highlight=False,
    )


def format_run_result(state: SessionState, console: Console) -> None:
    """Display the outcome of a run or resume call."""
    if state.status == SessionStatus.AWAITING_REVIEW and state.pending_review is not None:
        format_review(state.pending_review, state.session_id, console)
    else:
        message = state.latest_assistant_message()
        if message is not None and message.content:
            console.print(escape(message.content))
    console.print(
        f"[dim]session[/dim] {state.session_id}  [dim]status[/dim] {_status(state.status)}",
        highlight=False,
    )


def format_state(state: SessionState, usage: TokenUsage, console: Console) -> None:
    """Display a session's latest checkpoint."""
    console.print(f"Session [yellow]{escape(state.session_id)}[/yellow]")
    console.print(f"  Status:       {_status(state.status)}")
    console.print(f"  Messages:     {len(state.messages)}")
    console.print(f"  Tokens:       {_usage_bar(usage)}")
    console.print(f"  Iterations:   {state.iterations}")
    console.print(f"  Compressions: {len(state.compression_history)}")
    if state.task_list:
        stats = task_stats(state.task_list)
        console.print(
            f"  Tasks:        {stats[TaskStatus.COMPLETED.value]}/{stats['total']} completed"
        )
    if state.pending_review is not None:
        console.print()
        format_review(state.pending_review, state.session_id, console)


def format_history(states: Sequence[SessionState], console: Console) -> None:
    """Display every checkpoint of a session in a compact table."""
    if not states:
        console.print("[dim]No checkpoints.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Step", justify="right", style="yellow")
    table.add_column("Status")
    table.add_column("Messages", justify="right", style="green")
    table.add_column("Last message")

    for step, state in enumerate(states):
        last = state.last_message
        preview = ""
        if last is not None:
            text = last.content.replace("\n", " ")
            preview = f"{last.role.value}: {text[:60]}"
        table.add_row(str(step), _status(state.status), str(len(state.messages)), escape(preview))

    console.print(table)


def format_sessions(session_ids: Sequence[str], console: Console) -> None:
    if not session_ids:
        console.print("[dim]No sessions.[/dim]")
        return
    for session_id in session_ids:
        console.print(session_id, highlight=False)


def format_tasks(tasks: Sequence[Task], console: Console) -> None:
    """Display a task list as a table."""
    if not tasks:
        console.print("[dim]No tasks.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("ID", style="yellow")
    table.add_column("Status")
    table.add_column("Priority", style="dim")
    table.add_column("Name")

    for task in tasks:
        style = _TASK_STYLES[task.status]
        name = escape(task.name)
        if task.error:
            name += f" [red]({escape(task.error)})[/red]"
        table.add_row(
            escape(task.id),
            f"[{style}]{task.status.value}[/{style}]",
            task.priority.value if task.priority else "",
            name,
        )

    console.print(table)
