"""Task list operations.

The session reducer only replaces: a non-empty write replaces the whole
list. Stamping start and end times and checking transitions happen in the
producer, ``stamp_task_list``, which TodoWrite calls before it emits its
state patch.
"""

from __future__ import annotations

import json
from collections import Counter
from datetime import datetime, timezone
from typing import Sequence

from tether.exceptions import ToolError
from tether.models.tasks import Task, TaskStatus

# Allowed status changes for an existing task. Unchanged status is always allowed.
_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED}),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.BLOCKED}
    ),
    TaskStatus.BLOCKED: frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


def reduce_task_list(old: Sequence[Task], new: Sequence[Task] | None) -> list[Task]:
    """Merge a task list write into the session's list.

    An empty or missing write keeps ``old``. A non-empty write is adopted
    verbatim; no per-task merge happens here.
    """
    if not new:
        return list(old)
    return list(new)


def stamp_task_list(
    old: Sequence[Task],
    new: Sequence[Task],
    now: datetime | None = None,
) -> list[Task]:
    """Prepare a task list write for the reducer.

    Timestamps are owned by this function: any ``start_time`` or
    ``end_time`` carried by the write is ignored. For every task in ``new``:

    - ``start_time`` is the one the stored task already has; if there is
      none, entering ``in_progress`` stamps ``now``.
    - ``end_time`` is the one the stored task already has, even when the
      task was moved out of a terminal status; if there is none, entering
      ``completed`` or ``failed`` stamps ``now``.

    Args:
        old: The session's current task list.
        new: The task list proposed by the model.
        now: Timestamp to stamp with. Defaults to the current UTC time.

    Returns:
        The stamped list, in the order of ``new``.
    """
    now = now or datetime.now(timezone.utc)
    previous = {task.id: task for task in old}
    stamped: list[Task] = []
    for task in new:
        before = previous.get(task.id)
        start = before.start_time if before else None
        if start is None and task.status == TaskStatus.IN_PROGRESS:
            start = now

        end = before.end_time if before else None
        if end is None and task.status.is_terminal:
            end = now

        stamped.append(task.model_copy(update={"start_time": start, "end_time": end}))
    return stamped


def check_transitions(old: Sequence[Task], new: Sequence[Task]) -> list[str]:
    """Describe every status change in ``new`` that is not an allowed transition.

    New task ids may start in any status. Tasks missing from ``new`` are
    not reported.
    """
    previous = {task.id: task for task in old}
    violations: list[str] = []
    for task in new:
        before = previous.get(task.id)
        if before is None or before.status == task.status:
            continue
        if task.status not in _ALLOWED_TRANSITIONS[before.status]:
            violations.append(
                f"task {task.id!r}: {before.status.value} -> {task.status.value}"
            )
    return violations


def parse_task_list(raw: Sequence[dict]) -> list[Task]:
    """Validate the task dicts of a TodoWrite call.

    Accepts ``desc`` as an alias of ``description``.

    Raises:
        ToolError: If two tasks share an id.
    """
    tasks = []
    for item in raw:
        data = dict(item)
        if "desc" in data and "description" not in data:
            data["description"] = data.pop("desc")
        tasks.append(Task.model_validate(data))
    duplicates = sorted(tid for tid, n in Counter(t.id for t in tasks).items() if n > 1)
    if duplicates:
        raise ToolError(f"Duplicate task ids: {', '.join(duplicates)}")
    return tasks


def format_task_list(tasks: Sequence[Task]) -> str:
    """Render a task list as indented JSON, the way TodoRead returns it."""
    return json.dumps(
        [task.model_dump(mode="json", exclude_none=True) for task in tasks],
        indent=2,
        ensure_ascii=False,
    )


def task_stats(tasks: Sequence[Task]) -> dict[str, int]:
    """Count tasks per status. Every status is present, plus ``total``."""
    counts = Counter(task.status for task in tasks)
    stats = {status.value: counts.get(status, 0) for status in TaskStatus}
    stats["total"] = len(tasks)
    return stats
