"""Shared test fixtures for Tether.

Provides in-memory SQLite engine and checkpoint store fixtures, plus a
scripted LLM client and OpenAI-shaped response builders.
"""

from __future__ import annotations

import json
import threading

import pytest

from tether.models.state import SessionState
from tether.storage.engine import create_tether_engine, init_db
from tether.storage.memory import InMemoryCheckpointStore
from tether.storage.sqlite import SqlCheckpointStore


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------

def no_tool_call_response(text: str = "All done.", usage: dict | None = None) -> dict:
    """LLM response with no tool calls."""
    response = {"choices": [{"message": {"role": "assistant", "content": text}}]}
    if usage is not None:
        response["usage"] = usage
    return response


def tool_call_response(
    tool_name: str,
    arguments: dict,
    call_id: str = "call_1",
    text: str = "",
) -> dict:
    """LLM response with a single tool call."""
    return multi_tool_call_response([(tool_name, arguments, call_id)], text=text)


def multi_tool_call_response(
    calls: list[tuple[str, dict, str]],
    text: str = "",
) -> dict:
    """LLM response with several tool calls, given as (name, arguments, id)."""
    return {
        "choices": [
            {
                "message": {
                    "role": "assistant",
                    "content": text,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {
                                "name": name,
                                "arguments": json.dumps(arguments),
                            },
                        }
                        for name, arguments, call_id in calls
                    ],
                }
            }
        ]
    }


class MockLLM:
    """A scripted LLM client that returns responses in sequence.

    The last response repeats once the script runs out. An Exception in the
    script is raised instead of returned.
    """

    def __init__(self, responses: list, *, delay: threading.Event | None = None):
        self._responses = list(responses)
        self._delay = delay
        self.calls: list[dict] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def chat(self, messages, **kwargs) -> dict:
        self.calls.append({"messages": messages, **kwargs})
        if self._delay is not None:
            self._delay.wait(5)
        idx = min(len(self.calls), len(self._responses)) - 1
        response = self._responses[idx]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        pass


def make_mock_llm(responses: list, **kwargs) -> MockLLM:
    """Create a mock LLM that returns responses in sequence."""
    return MockLLM(responses, **kwargs)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_tether_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def sql_store(engine) -> SqlCheckpointStore:
    return SqlCheckpointStore(engine=engine)


@pytest.fixture
def memory_store() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()


@pytest.fixture(params=["memory", "sql"])
def store(request, engine):
    """Every CheckpointStore implementation."""
    if request.param == "memory":
        return InMemoryCheckpointStore()
    return SqlCheckpointStore(engine=engine)


@pytest.fixture
def sample_session_id() -> str:
    return "test-session-001"


@pytest.fixture
def empty_state(sample_session_id: str) -> SessionState:
    return SessionState(session_id=sample_session_id)
