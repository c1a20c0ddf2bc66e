"""ToolRegistry: the static set of tools available to a session.

The concurrency-safety partition is fixed at registration time through
``ToolDefinition.concurrency_safe`` and never inferred from a call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from tether.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name-keyed collection of tool definitions.

    Usage::

        registry = ToolRegistry(builtin_tools(workspace))
        registry.register(my_tool)
        registry.is_safe("ReadFile")  # True
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """Add a tool. Registering a name twice replaces the earlier tool."""
        if tool.name in self._tools:
            logger.debug("Replacing tool definition %s", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def is_safe(self, name: str) -> bool:
        """True if ``name`` is registered and concurrency-safe.

        Unknown tools count as unsafe.
        """
        tool = self._tools.get(name)
        return tool is not None and tool.concurrency_safe

    def safe_names(self) -> set[str]:
        return {name for name, tool in self._tools.items() if tool.concurrency_safe}

    def names(self) -> list[str]:
        return list(self._tools)

    def subset(self, names: Iterable[str]) -> ToolRegistry:
        """A new registry holding only the named tools that exist here."""
        return ToolRegistry(self._tools[n] for n in names if n in self._tools)

    def schemas(self) -> list[dict]:
        """OpenAI function-calling schemas for every registered tool."""
        return [tool.to_openai() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
