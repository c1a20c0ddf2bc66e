"""LLM client infrastructure for Tether.

Provides an OpenAI-compatible HTTP client with response decoding, the
pluggable LLMClient protocol, and the request renderer for session history.
"""

from tether.llm.client import (
    OpenAIClient,
    RetryPolicy,
    content_from_response,
    message_from_response,
    normalize_usage,
)
from tether.llm.errors import (
    LLMAuthError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMRequestError,
    LLMResponseError,
    LLMServerError,
    LLMStatusError,
)
from tether.llm.protocols import LLMClient
from tether.llm.wire import to_openai_messages

__all__ = [
    "OpenAIClient",
    "RetryPolicy",
    "LLMClient",
    "LLMClientError",
    "LLMConfigError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMResponseError",
    "LLMStatusError",
    "LLMServerError",
    "LLMRequestError",
    "content_from_response",
    "message_from_response",
    "normalize_usage",
    "to_openai_messages",
]
