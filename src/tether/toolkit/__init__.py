"""Agent toolkit: tool definitions, the registry and the dispatcher.

Tools are partitioned once, at registration, into concurrency-safe and
unsafe sets; the dispatcher runs safe calls of a turn in parallel and
unsafe calls in request order.
"""

from tether.toolkit.builtins import DANGEROUS_TOOL_NAMES, builtin_tools
from tether.toolkit.executor import ToolDispatcher, ToolExecutor
from tether.toolkit.models import (
    DispatchResult,
    StatePatch,
    ToolContext,
    ToolDefinition,
    ToolOutput,
)
from tether.toolkit.registry import ToolRegistry

__all__ = [
    "DANGEROUS_TOOL_NAMES",
    "DispatchResult",
    "StatePatch",
    "ToolContext",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolExecutor",
    "ToolOutput",
    "ToolRegistry",
    "builtin_tools",
]
