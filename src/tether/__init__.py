"""Tether: a resumable tool-calling agent loop.

Tether runs a model/tool conversation as a checkpointed state machine:
context is compressed when the token budget runs low, dangerous tool calls
wait for a human, and every step can be inspected and resumed later.
"""

from tether._version import __version__

# Core entry point
from tether.orchestrator import Node, Orchestrator, OrchestratorConfig, StepResult

# Session state
from tether.models.message import Message, Role, ToolCall
from tether.models.state import PendingReview, SessionState, SessionStatus
from tether.models.tasks import Task, TaskPriority, TaskStatus
from tether.models.compression import CompressionRecord, CompressResult

# Services
from tether.engine.tokens import CharEstimateCounter, TiktokenCounter, TokenBudget, TokenUsage
from tether.engine.compression import ContextCompressor
from tether.operations.review import ReviewDecision, classify_answer
from tether.operations.tasks import reduce_task_list, stamp_task_list

# Tools
from tether.toolkit import (
    DANGEROUS_TOOL_NAMES,
    StatePatch,
    ToolContext,
    ToolDefinition,
    ToolDispatcher,
    ToolOutput,
    ToolRegistry,
    builtin_tools,
)

# Storage
from tether.storage.repositories import CheckpointStore
from tether.storage.memory import InMemoryCheckpointStore
from tether.storage.sqlite import SqlCheckpointStore

# LLM
from tether.llm import LLMClient, OpenAIClient

# Protocols
from tether.protocols import TokenCounter

# Exceptions
from tether.exceptions import (
    CheckpointError,
    CompressionError,
    OrchestratorError,
    ReviewNotPendingError,
    ReviewPendingError,
    SessionBusyError,
    SessionNotFoundError,
    TaskTransitionError,
    TetherError,
    ToolError,
)

__all__ = [
    "__version__",
    # Core
    "Orchestrator",
    "OrchestratorConfig",
    "Node",
    "StepResult",
    # Session state
    "Message",
    "Role",
    "ToolCall",
    "SessionState",
    "SessionStatus",
    "PendingReview",
    "Task",
    "TaskStatus",
    "TaskPriority",
    "CompressionRecord",
    "CompressResult",
    # Services
    "TokenBudget",
    "TokenUsage",
    "CharEstimateCounter",
    "TiktokenCounter",
    "ContextCompressor",
    "ReviewDecision",
    "classify_answer",
    "reduce_task_list",
    "stamp_task_list",
    # Tools
    "DANGEROUS_TOOL_NAMES",
    "ToolDefinition",
    "ToolOutput",
    "StatePatch",
    "ToolContext",
    "ToolRegistry",
    "ToolDispatcher",
    "builtin_tools",
    # Storage
    "CheckpointStore",
    "InMemoryCheckpointStore",
    "SqlCheckpointStore",
    # LLM
    "LLMClient",
    "OpenAIClient",
    # Protocols
    "TokenCounter",
    # Exceptions
    "TetherError",
    "CheckpointError",
    "CompressionError",
    "OrchestratorError",
    "ReviewNotPendingError",
    "ReviewPendingError",
    "SessionBusyError",
    "SessionNotFoundError",
    "TaskTransitionError",
    "ToolError",
]
