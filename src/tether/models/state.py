"""Session state -- the aggregate root threaded through every step.

SessionState is frozen. Every step produces a new state via ``appended()``
or ``updated()``, so an aborted step never leaves a half-written record
behind and checkpoints are plain value snapshots.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from tether.models.compression import CompressionRecord
from tether.models.message import Message, Role, ToolCall
from tether.models.tasks import Task


class SessionStatus(str, enum.Enum):
    """Phase tag of a session. Last write wins."""

    IDLE = "idle"
    MODEL_CALLED = "model_called"
    COMPRESSED = "compressed"
    COMPRESSION_FAILED = "compression_failed"
    TOOLS_EXECUTED = "tools_executed"
    AWAITING_REVIEW = "awaiting_review"
    ERROR = "error"
    ERROR_HANDLED = "error_handled"
    RESET = "reset"
    ITERATION_LIMIT = "iteration_limit"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    def __str__(self) -> str:
        return self.value


class PendingReview(BaseModel):
    """The single outstanding human-review request of a session.

    ``kind="approval"`` gates a dangerous tool call; ``kind="question"``
    carries an AskHuman question whose answer becomes the tool result.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["approval", "question"] = "approval"
    tool_call_id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    prompt: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class SessionState(BaseModel):
    """Everything the orchestrator knows about one session."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    messages: list[Message] = Field(default_factory=list)
    task_list: list[Task] = Field(default_factory=list)
    compression_history: list[CompressionRecord] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.IDLE
    requires_human_review: bool = False
    pending_review: Optional[PendingReview] = None
    iterations: int = 0

    def appended(self, *messages: Message, **changes: Any) -> SessionState:
        """Return a copy with ``messages`` appended and other fields replaced."""
        return self.model_copy(
            update={"messages": [*self.messages, *messages], **changes}
        )

    def updated(self, **changes: Any) -> SessionState:
        """Return a copy with the given fields replaced."""
        return self.model_copy(update=changes)

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

    def _latest_assistant_index(self) -> int | None:
        for index in range(len(self.messages) - 1, -1, -1):
            if self.messages[index].role == Role.ASSISTANT:
                return index
        return None

    def latest_assistant_message(self) -> Message | None:
        """Newest assistant message, scanning from the end."""
        index = self._latest_assistant_index()
        return None if index is None else self.messages[index]

    def pending_tool_calls(self) -> tuple[ToolCall, ...]:
        """Tool calls of the latest assistant message that have no result yet.

        Only results appended after that message count, so correlation ids
        reused across turns do not hide a new call.
        """
        index = self._latest_assistant_index()
        if index is None:
            return ()
        assistant = self.messages[index]
        answered = {
            m.tool_call_id
            for m in self.messages[index + 1:]
            if m.role == Role.TOOL and m.tool_call_id
        }
        return tuple(tc for tc in assistant.tool_calls if tc.id not in answered)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> SessionState:
        return cls.model_validate_json(data)
