"""Abstract checkpoint store interface.

No SQLAlchemy imports here -- pure abstract contract. Implementations are
in memory.py and sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tether.models.state import SessionState


class CheckpointStore(ABC):
    """Append-only log of session states keyed by session id.

    Implementations must be safe to call from several threads at once;
    distinct sessions never interfere with each other.
    """

    @abstractmethod
    def save(self, session_id: str, state: SessionState) -> None:
        """Append ``state`` as the newest checkpoint of ``session_id``."""
        ...

    @abstractmethod
    def load(self, session_id: str) -> SessionState | None:
        """Latest checkpoint of ``session_id``, or None if there is none."""
        ...

    @abstractmethod
    def history(self, session_id: str) -> list[SessionState]:
        """Every checkpoint of ``session_id``, oldest first."""
        ...

    @abstractmethod
    def list_sessions(self) -> list[str]:
        """Ids of all sessions with at least one checkpoint."""
        ...

    @abstractmethod
    def delete(self, session_id: str) -> int:
        """Remove every checkpoint of ``session_id``. Returns the count removed."""
        ...

    def close(self) -> None:
        """Release resources. Default does nothing."""
