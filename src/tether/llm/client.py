"""OpenAI-compatible chat client and response decoding.

The orchestrator talks to any object with a ``chat()`` method returning an
OpenAI chat-completion dict. This module holds the built-in httpx client
for such APIs and the functions that turn a completion dict into session
data: ``message_from_response`` for the assistant turn and
``normalize_usage`` for the token figures the budget reads.
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable

import httpx
import tenacity

from tether.llm.errors import (
    LLMAuthError,
    LLMConfigError,
    LLMRateLimitError,
    LLMRequestError,
    LLMResponseError,
    LLMServerError,
)
from tether.models.message import Message, ToolCall

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------

def _count(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def normalize_usage(raw: dict | None) -> dict[str, int] | None:
    """Map a provider usage dict onto Tether's usage keys.

    The result always has ``prompt_tokens``, ``completion_tokens``,
    ``total_tokens`` and ``cache_creation_tokens``, plus ``cached_tokens``
    when the provider reports prompt cache reads. OpenAI names
    (``prompt_tokens_details.cached_tokens``) and Anthropic names
    (``input_tokens``, ``output_tokens``, ``cache_creation_input_tokens``,
    ``cache_read_input_tokens``) are both understood. A missing
    ``total_tokens`` is the sum of prompt and completion tokens.

    Returns None when ``raw`` is not a non-empty dict.
    """
    if not isinstance(raw, dict) or not raw:
        return None

    prompt = _count(raw.get("prompt_tokens", raw.get("input_tokens")))
    completion = _count(raw.get("completion_tokens", raw.get("output_tokens")))
    total = _count(raw.get("total_tokens")) or prompt + completion
    cache_creation = raw.get("cache_creation_tokens")
    if cache_creation is None:
        cache_creation = raw.get("cache_creation_input_tokens")

    usage = {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": total,
        "cache_creation_tokens": _count(cache_creation),
    }
    details = raw.get("prompt_tokens_details")
    cached = details.get("cached_tokens") if isinstance(details, dict) else None
    if cached is None:
        cached = raw.get("cache_read_input_tokens")
    if cached is not None:
        usage["cached_tokens"] = _count(cached)
    return usage


def _choice_message(response: dict) -> dict:
    try:
        message = response["choices"][0]["message"]
    except (KeyError, IndexError, TypeError) as exc:
        raise LLMResponseError(
            f"Cannot extract message from response: {exc}. Response: {response}"
        ) from exc
    if not isinstance(message, dict):
        raise LLMResponseError(f"Malformed message in response: {message!r}")
    for call in message.get("tool_calls") or []:
        function = call.get("function") if isinstance(call, dict) else None
        if not isinstance(function, dict) or not function.get("name"):
            raise LLMResponseError(f"Tool call without a function name: {call!r}")
    return message


def content_from_response(response: dict) -> str:
    """Text content of the first choice."""
    return _choice_message(response).get("content") or ""


def message_from_response(response: dict) -> Message:
    """Build the assistant Message for a completion: text, tool calls, usage."""
    raw = _choice_message(response)
    tool_calls = tuple(ToolCall.from_openai(tc) for tc in raw.get("tool_calls") or [])
    return Message.assistant(
        raw.get("content") or "",
        tool_calls=tool_calls,
        usage=normalize_usage(response.get("usage")),
    )


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryPolicy:
    """How hard the client retries transient failures.

    Waits grow exponentially from ``min_wait`` to ``max_wait`` with up to
    ``jitter`` seconds of random spread. A 429 carrying ``Retry-After``
    waits that long instead, capped at ``max_wait``.
    """

    max_attempts: int = 3
    min_wait: float = 1.0
    max_wait: float = 30.0
    jitter: float = 2.0

    def wait(self) -> Callable[[tenacity.RetryCallState], float]:
        backoff = tenacity.wait_exponential(
            multiplier=1, min=self.min_wait, max=self.max_wait
        ) + tenacity.wait_random(0, self.jitter)

        def _wait(retry_state: tenacity.RetryCallState) -> float:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            if isinstance(exc, LLMRateLimitError) and exc.retry_after is not None:
                return min(exc.retry_after, self.max_wait)
            return backoff(retry_state)

        return _wait


def _is_retryable(exc: BaseException) -> bool:
    """429, 5xx and connection failures are retried; everything else is not."""
    if isinstance(exc, (LLMRateLimitError, LLMServerError)):
        return True
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))


def _retry_after(response: httpx.Response) -> float | None:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class OpenAIClient:
    """Sync httpx client for OpenAI-compatible chat completions.

    Implements the LLMClient protocol. Every returned completion has been
    checked to carry a first-choice message, and its ``usage`` is
    normalized with ``normalize_usage``.

    Usage::

        with OpenAIClient(api_key="sk-...") as client:
            orchestrator = Orchestrator(client, builtin_tools("."))
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str | None = None,
        timeout: float = 120.0,
        retry: RetryPolicy | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: API key. Falls back to TETHER_OPENAI_API_KEY, then
                OPENAI_API_KEY.
            base_url: API base URL. Falls back to TETHER_OPENAI_BASE_URL,
                then to the OpenAI endpoint.
            default_model: Model used when ``chat`` gets none. Falls back
                to TETHER_MODEL, then gpt-4o-mini.
            timeout: Request timeout in seconds.
            retry: Retry policy for transient failures.
            transport: httpx transport, for proxies or tests.
            sleep: Called with each retry wait.

        Raises:
            LLMConfigError: If no API key is provided or found in environment.
        """
        api_key = (
            api_key
            or os.environ.get("TETHER_OPENAI_API_KEY")
            or os.environ.get("OPENAI_API_KEY")
        )
        if not api_key:
            raise LLMConfigError(
                "No API key provided. Pass api_key= or set TETHER_OPENAI_API_KEY "
                "(or OPENAI_API_KEY)."
            )
        self.base_url = (
            base_url or os.environ.get("TETHER_OPENAI_BASE_URL") or DEFAULT_BASE_URL
        ).rstrip("/")
        self.default_model = (
            default_model or os.environ.get("TETHER_MODEL") or "gpt-4o-mini"
        )
        self.retry = retry or RetryPolicy()
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}"},
        )

    def chat(
        self,
        messages: list[dict[str, Any]],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send a chat completion request, retrying transient failures.

        ``tools`` is forwarded only when non-empty. Other keyword arguments
        go into the payload unchanged.

        Raises:
            LLMAuthError: On 401/403.
            LLMRateLimitError: On 429 once the retry policy is exhausted.
            LLMServerError: On 5xx once the retry policy is exhausted.
            LLMRequestError: On any other 4xx.
            LLMResponseError: If the completion has no usable message.
        """
        payload: dict[str, Any] = {
            "model": model or self.default_model,
            "messages": messages,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        if not kwargs.get("tools"):
            kwargs.pop("tools", None)
        payload.update(kwargs)

        retryer = tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=self.retry.wait(),
            stop=tenacity.stop_after_attempt(self.retry.max_attempts),
            sleep=self._sleep,
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        data = retryer(self._post, payload)
        _choice_message(data)
        usage = normalize_usage(data.get("usage"))
        if usage is not None:
            data["usage"] = usage
        return data

    def _post(self, payload: dict[str, Any]) -> dict:
        response = self._client.post("/chat/completions", json=payload)
        status = response.status_code
        if status in (401, 403):
            raise LLMAuthError(f"Authentication failed: HTTP {status} - {response.text}")
        if status == 429:
            raise LLMRateLimitError(
                f"Rate limited: HTTP 429 - {response.text}",
                retry_after=_retry_after(response),
            )
        if status >= 500:
            raise LLMServerError(status, response.text)
        if status >= 400:
            raise LLMRequestError(status, response.text)
        try:
            return response.json()
        except ValueError as exc:
            raise LLMResponseError(f"Response is not JSON: {response.text[:200]}") from exc

    def close(self) -> None:
        """Close the underlying httpx client."""
        self._client.close()

    def __enter__(self) -> OpenAIClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
