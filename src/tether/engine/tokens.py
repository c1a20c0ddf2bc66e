"""Token budget tracking.

The tracker prefers real usage figures reported by the LLM service and
falls back to an estimate only when no assistant message carries usage
metadata. Usage metadata is cumulative as of the call that produced it,
so the newest annotated message is authoritative and the scan stops there.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from tether.llm.client import normalize_usage
from tether.models.message import Role

if TYPE_CHECKING:
    from tether.models.message import Message
    from tether.protocols import TokenCounter

DEFAULT_MAX_TOKENS = 128_000
DEFAULT_COMPRESSION_THRESHOLD = 0.92


@dataclass(frozen=True)
class TokenUsage:
    """Context usage derived from a message list. Never stored."""

    used: int
    total: int
    percentage: float


class CharEstimateCounter:
    """Estimates one token per four characters, rounded up.

    Implements the TokenCounter protocol.
    """

    chars_per_token = 4

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)


class TiktokenCounter:
    """Token counter using tiktoken.

    Lazily imports tiktoken and caches the Encoding instance.
    Falls back to o200k_base encoding if model is unknown.

    Implements the TokenCounter protocol.
    """

    def __init__(self, model: str = "gpt-4o", encoding_name: str | None = None) -> None:
        import tiktoken

        if encoding_name is not None:
            self._enc = tiktoken.get_encoding(encoding_name)
        else:
            try:
                self._enc = tiktoken.encoding_for_model(model)
            except KeyError:
                self._enc = tiktoken.get_encoding("o200k_base")

        self._encoding_name = self._enc.name

    @property
    def encoding_name(self) -> str:
        """Name of the tiktoken encoding being used."""
        return self._encoding_name

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        return len(self._enc.encode(text))


def usage_from_metadata(usage: dict) -> int:
    """Tokens consumed according to an LLM usage dict.

    ``total_tokens`` plus tokens written to the provider's prompt cache,
    read through ``normalize_usage`` so both OpenAI and Anthropic key
    names count.
    """
    normalized = normalize_usage(usage)
    if normalized is None:
        return 0
    return normalized["total_tokens"] + normalized["cache_creation_tokens"]


class TokenBudget:
    """Reads or estimates context usage and decides when to compress.

    Usage::

        budget = TokenBudget(max_tokens=1000, compression_threshold=0.92)
        if budget.needs_compression(state.messages):
            ...
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        compression_threshold: float = DEFAULT_COMPRESSION_THRESHOLD,
        counter: TokenCounter | None = None,
    ) -> None:
        if max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")
        self.max_tokens = max_tokens
        self.compression_threshold = compression_threshold
        self._counter = counter or CharEstimateCounter()

    def estimate(self, messages: Sequence[Message]) -> int:
        """Estimate tokens from the content of ``messages`` alone."""
        return self._counter.count_text("".join(m.content for m in messages))

    def usage(self, messages: Sequence[Message]) -> TokenUsage:
        used: int | None = None
        for message in reversed(messages):
            if message.role == Role.ASSISTANT and message.usage:
                used = usage_from_metadata(message.usage)
                break
        if used is None:
            used = self.estimate(messages)
        return TokenUsage(
            used=used,
            total=self.max_tokens,
            percentage=used / self.max_tokens,
        )

    def needs_compression(self, messages: Sequence[Message]) -> bool:
        return self.usage(messages).percentage >= self.compression_threshold
