"""Orchestrator step and routing models."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from tether.models.state import SessionStatus


class Node(str, enum.Enum):
    """States of the agent loop."""

    COMPRESSION_CHECK = "compression_check"
    MODEL_CALL = "model_call"
    HUMAN_REVIEW = "human_review"
    SAFE_TOOLS = "safe_tools"
    UNSAFE_TOOLS = "unsafe_tools"
    TERMINATE = "terminate"


@dataclass(frozen=True)
class StepResult:
    """Record of one executed loop step, passed to ``on_step``.

    Frozen: step results are immutable records of what happened.
    """

    session_id: str
    step: int
    node: Node
    status: SessionStatus
    next_node: Node
    message_count: int = 0
