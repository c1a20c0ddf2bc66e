"""Orchestrator configuration.

``OrchestratorConfig`` is a mutable dataclass -- callers may adjust
settings between runs. ``from_env()`` builds one from ``TETHER_*``
environment variables for the CLI and other entry points.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Any, Callable, Mapping

from tether.engine.tokens import DEFAULT_COMPRESSION_THRESHOLD, DEFAULT_MAX_TOKENS
from tether.toolkit.builtins import DANGEROUS_TOOL_NAMES

if TYPE_CHECKING:
    from tether.orchestrator.models import StepResult

logger = logging.getLogger(__name__)

_ENV_PREFIX = "TETHER_"


@dataclass
class OrchestratorConfig:
    """Configuration for the agent loop.

    Attributes:
        max_tokens: Context budget used as the denominator of token usage.
        compression_threshold: Usage fraction at which history is compressed.
        recent_messages_kept_on_compression: Messages kept verbatim after
            the summary.
        max_loop_iterations: Maximum model calls per invoke/resume call.
        dangerous_tool_names: Tools that require human approval.
        compressor_char_window: Per-message character cap in the
            summarization request.
        summary_preview_chars: Length of ``CompressionRecord.summary_preview``.
        max_tool_workers: Thread pool size for concurrency-safe tool runs.
        strict_task_transitions: Reject TodoWrite calls with disallowed
            status changes instead of logging them.
        tokenizer_encoding: tiktoken encoding for usage estimates. None uses
            the four-characters-per-token estimate.
        model: LLM model identifier (None = use default from LLM client).
        temperature: LLM temperature for agent calls.
        response_max_tokens: Maximum tokens per LLM response.
        system_prompt: Override for the default agent system prompt.
        extra_llm_kwargs: Additional LLM kwargs forwarded to client.chat().
        on_step: Callback invoked after each loop step.
    """

    max_tokens: int = DEFAULT_MAX_TOKENS
    compression_threshold: float = DEFAULT_COMPRESSION_THRESHOLD
    recent_messages_kept_on_compression: int = 5
    max_loop_iterations: int = 25
    dangerous_tool_names: set[str] = field(default_factory=lambda: set(DANGEROUS_TOOL_NAMES))
    compressor_char_window: int = 1000
    summary_preview_chars: int = 200
    max_tool_workers: int = 4
    strict_task_transitions: bool = False
    tokenizer_encoding: str | None = None
    model: str | None = None
    temperature: float = 0.1
    response_max_tokens: int | None = 4000
    system_prompt: str | None = None
    extra_llm_kwargs: dict | None = None
    on_step: Callable[[StepResult], None] | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> OrchestratorConfig:
        """Build a config from ``TETHER_<FIELD>`` variables.

        ``TETHER_MAX_TOKENS=64000`` sets ``max_tokens``;
        ``TETHER_DANGEROUS_TOOL_NAMES`` is a comma-separated list. Unset or
        empty variables keep the default; keyword overrides win over both.

        Raises:
            ValueError: If a variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            if f.name in ("on_step", "extra_llm_kwargs"):
                continue
            raw = env.get(_ENV_PREFIX + f.name.upper())
            if raw is None or raw.strip() == "":
                continue
            values[f.name] = _parse(f.name, raw.strip())
        values.update(overrides)
        config = cls(**values)
        logger.debug("Loaded config from environment: %s", sorted(values))
        return config


_INT_FIELDS = {
    "max_tokens",
    "recent_messages_kept_on_compression",
    "max_loop_iterations",
    "compressor_char_window",
    "summary_preview_chars",
    "max_tool_workers",
    "response_max_tokens",
}
_FLOAT_FIELDS = {"compression_threshold", "temperature"}


def _parse(name: str, raw: str) -> Any:
    env_name = _ENV_PREFIX + name.upper()
    try:
        if name in _INT_FIELDS:
            return int(raw)
        if name in _FLOAT_FIELDS:
            return float(raw)
    except ValueError as exc:
        raise ValueError(f"{env_name} must be a number, got {raw!r}") from exc
    if name == "strict_task_transitions":
        return raw.lower() in ("1", "true", "yes", "on")
    if name == "dangerous_tool_names":
        return {part.strip() for part in raw.split(",") if part.strip()}
    return raw
