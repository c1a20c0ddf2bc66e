"""LLM client protocol.

Any object with a ``chat()`` method matching this signature can drive the
orchestrator. Responses use the OpenAI chat-completion shape
(``choices[0].message`` plus an optional ``usage`` dict).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class LLMClient(Protocol):
    """Protocol for pluggable LLM clients.

    The built-in OpenAIClient implements this protocol. Test doubles only
    need a ``chat`` method.
    """

    def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send messages (and optional ``tools=``), return the response dict."""
        ...
