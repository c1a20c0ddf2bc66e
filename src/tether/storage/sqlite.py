"""SQLAlchemy checkpoint store.

Uses SQLAlchemy 2.0-style queries (select() + session.execute()) with a
short-lived Session per call, so one store can be shared across threads.
Any database error is re-raised as ``CheckpointError``: a checkpoint that
cannot be written must never be skipped silently.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy import Engine, delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from tether.exceptions import CheckpointError
from tether.models.state import SessionState
from tether.storage.engine import create_session_factory, create_tether_engine, init_db
from tether.storage.repositories import CheckpointStore
from tether.storage.schema import CheckpointRow

logger = logging.getLogger(__name__)


class SqlCheckpointStore(CheckpointStore):
    """Checkpoint log in a relational database (SQLite by default).

    Usage::

        store = SqlCheckpointStore(db_path="tether.db")
        store.save(state.session_id, state)
        latest = store.load(state.session_id)

    Args:
        db_path: SQLite file path or ``":memory:"``. Ignored when ``url``
            or ``engine`` is given.
        url: Any SQLAlchemy database URL.
        engine: A pre-built Engine. The store does not dispose it on close.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        *,
        url: str | None = None,
        engine: Engine | None = None,
    ) -> None:
        self._owns_engine = engine is None
        try:
            self._engine = engine or create_tether_engine(db_path, url=url)
            init_db(self._engine)
        except SQLAlchemyError as exc:
            raise CheckpointError(f"Cannot open checkpoint database: {exc}") from exc
        self._session_factory = create_session_factory(self._engine)

    def save(self, session_id: str, state: SessionState) -> None:
        try:
            with self._session_factory() as session:
                last = session.execute(
                    select(func.max(CheckpointRow.step)).where(
                        CheckpointRow.session_id == session_id
                    )
                ).scalar()
                step = 0 if last is None else last + 1
                session.add(
                    CheckpointRow(
                        session_id=session_id,
                        step=step,
                        status=state.status.value,
                        created_at=datetime.now(timezone.utc),
                        state_json=state.to_json(),
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise CheckpointError(
                f"Failed to save checkpoint for session {session_id}: {exc}"
            ) from exc
        logger.debug("Checkpoint %s#%d saved (%s)", session_id, step, state.status.value)

    def load(self, session_id: str) -> SessionState | None:
        stmt = (
            select(CheckpointRow.state_json)
            .where(CheckpointRow.session_id == session_id)
            .order_by(CheckpointRow.step.desc())
            .limit(1)
        )
        try:
            with self._session_factory() as session:
                raw = session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise CheckpointError(
                f"Failed to load checkpoint for session {session_id}: {exc}"
            ) from exc
        return None if raw is None else self._decode(session_id, raw)

    def history(self, session_id: str) -> list[SessionState]:
        stmt = (
            select(CheckpointRow.state_json)
            .where(CheckpointRow.session_id == session_id)
            .order_by(CheckpointRow.step)
        )
        try:
            with self._session_factory() as session:
                rows = session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            raise CheckpointError(
                f"Failed to read history of session {session_id}: {exc}"
            ) from exc
        return [self._decode(session_id, raw) for raw in rows]

    def list_sessions(self) -> list[str]:
        stmt = select(CheckpointRow.session_id).distinct().order_by(CheckpointRow.session_id)
        try:
            with self._session_factory() as session:
                return list(session.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            raise CheckpointError(f"Failed to list sessions: {exc}") from exc

    def delete(self, session_id: str) -> int:
        try:
            with self._session_factory() as session:
                result = session.execute(
                    delete(CheckpointRow).where(CheckpointRow.session_id == session_id)
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise CheckpointError(
                f"Failed to delete session {session_id}: {exc}"
            ) from exc
        return result.rowcount or 0

    def close(self) -> None:
        if self._owns_engine:
            self._engine.dispose()

    @staticmethod
    def _decode(session_id: str, raw: str) -> SessionState:
        try:
            return SessionState.from_json(raw)
        except ValidationError as exc:
            raise CheckpointError(
                f"Corrupt checkpoint for session {session_id}: {exc}"
            ) from exc
