"""Context compression.

Summarizes a session's history into a single synthetic assistant message
so the conversation fits the token budget again. The compressor never
modifies history; it returns the summary and reports which messages it
supersedes, and the orchestrator performs the splice.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Sequence

from tether.exceptions import CompressionError
from tether.llm.client import content_from_response
from tether.models.compression import CompressionRecord, CompressResult
from tether.models.message import Message, Role
from tether.prompts.summarize import SUMMARY_PREFIX, build_compression_prompt

if TYPE_CHECKING:
    from tether.engine.tokens import TokenBudget
    from tether.llm.protocols import LLMClient

logger = logging.getLogger(__name__)

_ROLE_LABELS: dict[Role, str] = {
    Role.HUMAN: "Human",
    Role.ASSISTANT: "Assistant",
    Role.TOOL: "Tool",
    Role.SYSTEM: "System",
}


def render_history(messages: Sequence[Message], char_window: int = 1000) -> str:
    """Render messages as ``[n] Role: text`` blocks, each cut to ``char_window``."""
    blocks = []
    for index, message in enumerate(messages, start=1):
        text = message.content[:char_window]
        if message.tool_calls:
            names = ", ".join(tc.name for tc in message.tool_calls)
            text = f"{text}\n(requested tools: {names})".lstrip()
        blocks.append(f"[{index}] {_ROLE_LABELS[message.role]}: {text}")
    return "\n\n".join(blocks)


def _preview(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class ContextCompressor:
    """Produces a structured summary of a message history.

    Args:
        llm: Client used for the summarization request.
        budget: Token budget; supplies the before/after token figures.
        char_window: Per-message character cap applied when rendering.
        preview_chars: Length of the summary preview kept in the record.
        keep_recent: Size of the recency tail the orchestrator keeps.
            Only used to report ``dropped_messages``.
        model: Optional model override for the summarization call.
    """

    def __init__(
        self,
        llm: LLMClient,
        budget: TokenBudget,
        *,
        char_window: int = 1000,
        preview_chars: int = 200,
        keep_recent: int = 5,
        model: str | None = None,
    ) -> None:
        self._llm = llm
        self._budget = budget
        self.char_window = char_window
        self.preview_chars = preview_chars
        self.keep_recent = keep_recent
        self._model = model

    def compress(self, messages: Sequence[Message]) -> CompressResult:
        """Summarize ``messages`` with one LLM request.

        Raises:
            CompressionError: If the request fails or returns no text.
        """
        if not messages:
            raise CompressionError("No messages to compress")

        tokens_before = self._budget.usage(messages).used
        prompt = build_compression_prompt(render_history(messages, self.char_window))

        kwargs = {}
        if self._model:
            kwargs["model"] = self._model
        try:
            response = self._llm.chat([{"role": "user", "content": prompt}], **kwargs)
            text = content_from_response(response)
        except Exception as exc:
            raise CompressionError(f"Summarization request failed: {exc}") from exc

        if not text.strip():
            raise CompressionError("LLM returned empty summary")

        summary = Message(
            role=Role.ASSISTANT,
            content=f"{SUMMARY_PREFIX}\n\n{text}",
            is_summary=True,
        )
        tokens_after = self._budget.estimate([summary])
        record = CompressionRecord(
            timestamp=datetime.now(timezone.utc),
            tokens_before=tokens_before,
            tokens_after=tokens_after,
            ratio=tokens_after / tokens_before if tokens_before else 0.0,
            summary_preview=_preview(text, self.preview_chars),
        )

        cut = max(len(messages) - self.keep_recent, 0)
        logger.info(
            "Compressed %d messages: %d -> %d tokens",
            len(messages),
            tokens_before,
            tokens_after,
        )
        return CompressResult(
            summary_message=summary,
            record=record,
            dropped_messages=tuple(messages[:cut]),
        )


def splice_compressed(
    messages: Sequence[Message], result: CompressResult, keep_recent: int
) -> list[Message]:
    """Build ``[summary] + last keep_recent messages``.

    Usage metadata is stripped from the kept messages: it predates the
    summary and would otherwise keep the budget above the threshold.
    """
    tail = list(messages[-keep_recent:]) if keep_recent > 0 else []
    tail = [m.model_copy(update={"usage": None}) if m.usage else m for m in tail]
    return [result.summary_message, *tail]
