"""Protocol definitions for Tether.

Pluggable interfaces that are not tied to a concrete backend. No SQLAlchemy
or httpx imports allowed in this module.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenCounter(Protocol):
    """Protocol for pluggable token estimation."""

    def count_text(self, text: str) -> int:
        """Estimate tokens in a plain text string."""
        ...
