"""Toolkit data models.

Frozen dataclasses for tool definitions, the context a handler may ask
for, and the tagged result a handler returns.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from collections.abc import Callable

    from tether.models.message import Message
    from tether.models.tasks import Task


@dataclass(frozen=True)
class ToolDefinition:
    """A single tool the model may call.

    Attributes:
        name: Tool name (e.g. "ReadFile", "Bash").
        description: When and why the model should use this tool.
        parameters: JSON Schema dict describing tool parameters.
        handler: Callable that executes the tool. Returns ``str`` or
            ``ToolOutput``.
        concurrency_safe: True for read-only or idempotent tools that may
            run in parallel with other safe calls of the same turn.
        takes_context: When True the handler is called as
            ``handler(context, **arguments)``.
    """

    name: str
    description: str
    parameters: dict
    handler: Callable[..., object]
    concurrency_safe: bool = False
    takes_context: bool = False

    def to_openai(self) -> dict:
        """Convert to OpenAI function-calling format.

        Returns:
            Dict with "type": "function" and nested "function" object.
        """
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ToolContext:
    """Read-only view of the session handed to context-aware handlers.

    ``task_list`` reflects every state patch applied earlier in the same turn.
    """

    session_id: str
    task_list: tuple[Task, ...] = ()


@dataclass(frozen=True)
class StatePatch:
    """Session changes requested by a tool alongside its result text."""

    task_list: tuple[Task, ...] | None = None


@dataclass(frozen=True)
class ToolOutput:
    """Tool result carrying a state patch."""

    content: str
    state_patch: StatePatch = field(default_factory=StatePatch)


ToolReturn = Union[str, ToolOutput]


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of executing one turn's tool calls.

    Attributes:
        messages: One tool-result message per call, in request order.
        task_list: The task list after all patches, or None if no call
            patched it.
    """

    messages: tuple[Message, ...]
    task_list: tuple[Task, ...] | None = None
