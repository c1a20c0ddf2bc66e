"""In-memory checkpoint store for tests and sub-agents."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from tether.storage.repositories import CheckpointStore

if TYPE_CHECKING:
    from tether.models.state import SessionState


class InMemoryCheckpointStore(CheckpointStore):
    """Keeps checkpoints in a dict of lists guarded by a lock.

    States are frozen, so stored objects are shared rather than copied.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._log: dict[str, list[SessionState]] = {}

    def save(self, session_id: str, state: SessionState) -> None:
        with self._lock:
            self._log.setdefault(session_id, []).append(state)

    def load(self, session_id: str) -> SessionState | None:
        with self._lock:
            entries = self._log.get(session_id)
            return entries[-1] if entries else None

    def history(self, session_id: str) -> list[SessionState]:
        with self._lock:
            return list(self._log.get(session_id, ()))

    def list_sessions(self) -> list[str]:
        with self._lock:
            return sorted(self._log)

    def delete(self, session_id: str) -> int:
        with self._lock:
            return len(self._log.pop(session_id, ()))
