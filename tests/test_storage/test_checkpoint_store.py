"""Tests for the checkpoint stores (in-memory and SQLAlchemy)."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from hypothesis import given, settings
from sqlalchemy import inspect, select, text

from tether.exceptions import CheckpointError
from tether.models.compression import CompressionRecord
from tether.models.message import Message, ToolCall
from tether.models.state import PendingReview, SessionState, SessionStatus
from tether.models.tasks import Task, TaskStatus
from tether.storage.engine import SCHEMA_VERSION, init_db
from tether.storage.schema import CheckpointRow, TetherMetaRow
from tether.storage.sqlite import SqlCheckpointStore

from tests.strategies import session_state


def _rich_state(session_id: str = "s1") -> SessionState:
    call = ToolCall(id="c1", name="WriteFile", arguments={"file_path": "a.txt", "content": "é"})
    return SessionState(
        session_id=session_id,
        messages=[
            Message.human("write a file"),
            Message.assistant("", tool_calls=[call], usage={"total_tokens": 12}),
        ],
        task_list=[
            Task(
                id="1",
                name="write",
                status=TaskStatus.IN_PROGRESS,
                start_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
            )
        ],
        compression_history=[
            CompressionRecord(
                timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
                tokens_before=100,
                tokens_after=10,
                ratio=0.1,
                summary_preview="short",
            )
        ],
        status=SessionStatus.AWAITING_REVIEW,
        requires_human_review=True,
        pending_review=PendingReview(
            tool_call_id="c1", tool_name="WriteFile", prompt="Please confirm"
        ),
        iterations=3,
    )


class TestCheckpointStoreContract:
    """Behavior shared by every CheckpointStore implementation."""

    def test_load_missing(self, store):
        assert store.load("missing") is None
        assert store.history("missing") == []

    def test_round_trip(self, store):
        state = _rich_state()
        store.save("s1", state)
        assert store.load("s1") == state

    def test_latest_wins(self, store):
        first = SessionState(session_id="s1")
        second = first.appended(Message.human("hi"), status=SessionStatus.COMPLETED)
        store.save("s1", first)
        store.save("s1", second)
        assert store.load("s1") == second

    def test_history_oldest_first(self, store):
        states = [SessionState(session_id="s1", iterations=i) for i in range(4)]
        for state in states:
            store.save("s1", state)
        assert [s.iterations for s in store.history("s1")] == [0, 1, 2, 3]

    def test_sessions_isolated(self, store):
        store.save("a", SessionState(session_id="a", iterations=1))
        store.save("b", SessionState(session_id="b", iterations=2))
        assert store.load("a").iterations == 1
        assert store.load("b").iterations == 2
        assert store.list_sessions() == ["a", "b"]

    def test_delete(self, store):
        store.save("a", SessionState(session_id="a"))
        store.save("a", SessionState(session_id="a"))
        store.save("b", SessionState(session_id="b"))

        assert store.delete("a") == 2
        assert store.load("a") is None
        assert store.list_sessions() == ["b"]
        assert store.delete("a") == 0


class TestSqlCheckpointStore:

    def test_tables_created(self, engine):
        tables = inspect(engine).get_table_names()
        assert "checkpoints" in tables
        assert "_tether_meta" in tables

    def test_schema_version_recorded(self, engine):
        with engine.connect() as conn:
            value = conn.execute(
                select(TetherMetaRow.value).where(TetherMetaRow.key == "schema_version")
            ).scalar_one()
        assert value == SCHEMA_VERSION

    def test_init_db_idempotent(self, engine):
        init_db(engine)
        with engine.connect() as conn:
            rows = conn.execute(select(TetherMetaRow)).all()
        assert len(rows) == 1

    def test_steps_and_status_columns(self, engine, sql_store):
        sql_store.save("s1", SessionState(session_id="s1"))
        sql_store.save("s1", SessionState(session_id="s1", status=SessionStatus.COMPLETED))
        with engine.connect() as conn:
            rows = conn.execute(
                select(CheckpointRow.step, CheckpointRow.status).order_by(CheckpointRow.step)
            ).all()
        assert [tuple(r) for r in rows] == [(0, "idle"), (1, "completed")]

    def test_file_database_survives_reopen(self, tmp_path):
        path = str(tmp_path / "tether.db")
        store = SqlCheckpointStore(db_path=path)
        store.save("s1", _rich_state())
        store.close()

        reopened = SqlCheckpointStore(db_path=path)
        assert reopened.load("s1") == _rich_state()
        reopened.close()

    def test_corrupt_row_raises_checkpoint_error(self, engine, sql_store):
        sql_store.save("s1", SessionState(session_id="s1"))
        with engine.begin() as conn:
            conn.execute(text("UPDATE checkpoints SET state_json = '{not json'"))
        with pytest.raises(CheckpointError, match="Corrupt checkpoint"):
            sql_store.load("s1")

    def test_database_error_raises_checkpoint_error(self, engine, sql_store):
        with engine.begin() as conn:
            conn.execute(text("DROP TABLE checkpoints"))
        with pytest.raises(CheckpointError):
            sql_store.save("s1", SessionState(session_id="s1"))

    def test_shared_engine_not_disposed(self, engine):
        store = SqlCheckpointStore(engine=engine)
        store.close()
        with engine.connect() as conn:
            assert conn.execute(text("SELECT 1")).scalar() == 1

    @settings(max_examples=25)
    @given(state=session_state)
    def test_any_state_round_trips(self, state):
        store = SqlCheckpointStore()
        store.save(state.session_id, state)
        assert store.load(state.session_id) == state
        store.close()
