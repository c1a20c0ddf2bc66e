"""LLM-specific error hierarchy.

All LLM errors inherit from TetherError for consistent exception handling.
"""

from __future__ import annotations

from tether.exceptions import TetherError


class LLMClientError(TetherError):
    """Base for all LLM client errors."""


class LLMConfigError(LLMClientError):
    """Missing or invalid LLM configuration (e.g., no API key)."""


class LLMRateLimitError(LLMClientError):
    """Rate limited by the API (429).

    Attributes:
        retry_after: Seconds to wait before retrying (from Retry-After header),
            or None if not provided.
    """

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        if retry_after is not None:
            message = f"{message} (retry after {retry_after}s)"
        super().__init__(message)


class LLMAuthError(LLMClientError):
    """Authentication failed (401/403)."""


class LLMResponseError(LLMClientError):
    """Unexpected response format from LLM API."""


class LLMStatusError(LLMClientError):
    """The API answered with an error status.

    Attributes:
        status_code: The HTTP status code.
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code} - {body}" if body else f"HTTP {status_code}")


class LLMServerError(LLMStatusError):
    """Server-side failure (5xx). Retried."""


class LLMRequestError(LLMStatusError):
    """The API rejected the request (4xx other than 401, 403, 429). Not retried."""
