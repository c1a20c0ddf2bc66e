"""Conversation message models.

Messages are frozen pydantic models so a session's history can be
checkpointed as JSON and compared after a round trip.
"""

from __future__ import annotations

import enum
import json as _json
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, enum.Enum):
    """Author of a message."""

    HUMAN = "human"
    ASSISTANT = "assistant"
    TOOL = "tool"
    SYSTEM = "system"


class ToolCall(BaseModel):
    """A tool invocation requested by the model.

    Provider-agnostic: OpenAI's JSON-string arguments are parsed at
    ingestion time, so ``arguments`` is always a dict.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_openai(cls, tc: dict) -> ToolCall:
        """Parse from the OpenAI wire format."""
        func = tc.get("function", {})
        raw_args = func.get("arguments", "{}")
        try:
            arguments = _json.loads(raw_args) if isinstance(raw_args, str) else raw_args
        except (_json.JSONDecodeError, TypeError):
            arguments = {"_raw": raw_args}
        if not isinstance(arguments, dict):
            arguments = {"_raw": raw_args}
        call_id = tc.get("id") or f"call_{uuid.uuid4().hex[:8]}"
        return cls(id=call_id, name=func.get("name", ""), arguments=arguments or {})

    def to_openai(self) -> dict:
        """Serialize to the OpenAI wire format."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": _json.dumps(self.arguments, ensure_ascii=False),
            },
        }


class Message(BaseModel):
    """A single, immutable unit of conversation.

    Attributes:
        role: Who produced the message.
        content: Text content.
        tool_calls: Tool invocations requested by an assistant message.
        tool_call_id: Correlation id on a tool result.
        name: Tool name on a tool result.
        usage: Usage metadata from the LLM response (assistant only).
        is_summary: True for the synthetic message produced by compression.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None
    name: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
    is_summary: bool = False

    @classmethod
    def human(cls, text: str) -> Message:
        return cls(role=Role.HUMAN, content=text)

    @classmethod
    def system(cls, text: str) -> Message:
        return cls(role=Role.SYSTEM, content=text)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        *,
        tool_calls: tuple[ToolCall, ...] | list[ToolCall] = (),
        usage: dict[str, Any] | None = None,
    ) -> Message:
        return cls(
            role=Role.ASSISTANT,
            content=text,
            tool_calls=tuple(tool_calls),
            usage=usage,
        )

    @classmethod
    def tool(cls, content: str, *, tool_call_id: str, name: str) -> Message:
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id, name=name)

    @property
    def has_tool_calls(self) -> bool:
        return self.role == Role.ASSISTANT and bool(self.tool_calls)
