"""Task list models.

Tasks are created and advanced by the model through the TodoWrite tool.
``completed`` and ``failed`` are terminal; ``blocked`` is a parked state
with no automatic transition out of it.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class TaskStatus(str, enum.Enum):
    """Lifecycle states of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class TaskPriority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Task(BaseModel):
    """One entry of a session's task list."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    status: TaskStatus = TaskStatus.PENDING
    priority: Optional[TaskPriority] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error: Optional[str] = None
