"""SQLAlchemy ORM schema for Tether checkpoints.

One row per checkpoint. The session state itself is stored as the JSON
produced by ``SessionState.to_json()``; ``status`` is duplicated into a
column so listings do not have to parse it.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all Tether ORM models."""

    pass


class CheckpointRow(Base):
    """A durable snapshot of one session at one step. Append-only."""

    __tablename__ = "checkpoints"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    step: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    state_json: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("ix_checkpoints_session_step", "session_id", "step", unique=True),
    )


class TetherMetaRow(Base):
    """Key-value metadata for the Tether database itself (e.g., schema version)."""

    __tablename__ = "_tether_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
