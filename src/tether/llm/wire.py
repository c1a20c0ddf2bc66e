"""Rendering of Tether messages as an OpenAI chat request.

Session history is kept in causal order, which is not always a valid
OpenAI request: a review confirmation can sit between an assistant turn
and its tool results, a rejected call has no result at all, and
compression can keep a tool result whose originating call was dropped.
``to_openai_messages`` repairs all three at render time without touching
the stored history.
"""

from __future__ import annotations

from typing import Any, Sequence

from tether.models.message import Message, Role

NOT_EXECUTED = "Tool call was not executed."

_WIRE_ROLES: dict[Role, str] = {
    Role.HUMAN: "user",
    Role.ASSISTANT: "assistant",
    Role.SYSTEM: "system",
    Role.TOOL: "tool",
}


def _next_assistant_index(messages: Sequence[Message], start: int) -> int:
    for index in range(start, len(messages)):
        if messages[index].role == Role.ASSISTANT:
            return index
    return len(messages)


def to_openai_messages(
    messages: Sequence[Message],
    *,
    system_prompt: str | None = None,
) -> list[dict[str, Any]]:
    """Render ``messages`` as an OpenAI chat request body.

    - Each assistant turn with tool calls is followed directly by the
      results of those calls found before the next assistant message.
    - A call with no result gets a synthetic "not executed" result.
    - A tool result with no originating call is rendered as user text.
    """
    out: list[dict[str, Any]] = []
    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    consumed: set[int] = set()
    for index, message in enumerate(messages):
        if index in consumed:
            continue

        if message.role == Role.TOOL:
            label = message.name or "tool"
            out.append({"role": "user", "content": f"[{label} result]\n{message.content}"})
            continue

        if not message.has_tool_calls:
            out.append({"role": _WIRE_ROLES[message.role], "content": message.content})
            continue

        out.append({
            "role": "assistant",
            "content": message.content or None,
            "tool_calls": [tc.to_openai() for tc in message.tool_calls],
        })
        boundary = _next_assistant_index(messages, index + 1)
        for call in message.tool_calls:
            answer = None
            for j in range(index + 1, boundary):
                candidate = messages[j]
                if (
                    j not in consumed
                    and candidate.role == Role.TOOL
                    and candidate.tool_call_id == call.id
                ):
                    answer = j
                    break
            if answer is None:
                content = NOT_EXECUTED
            else:
                consumed.add(answer)
                content = messages[answer].content
            out.append({"role": "tool", "tool_call_id": call.id, "content": content})

    return out
