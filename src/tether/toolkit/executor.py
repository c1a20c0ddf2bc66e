"""Tool execution.

``ToolExecutor`` runs one call and never raises: unknown tools, bad
arguments and handler exceptions all become tool-result messages carrying
the error, so the model can see the failure and pick another path.

``ToolDispatcher`` runs every call of one model turn. Consecutive
concurrency-safe calls are submitted to a thread pool together; unsafe
calls run one at a time. Results always come back in request order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import TYPE_CHECKING, Sequence

from tether.models.message import Message
from tether.operations.tasks import reduce_task_list
from tether.toolkit.models import DispatchResult, ToolContext, ToolOutput

if TYPE_CHECKING:
    from tether.models.message import ToolCall
    from tether.toolkit.models import StatePatch
    from tether.toolkit.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Dispatches a single tool call to its handler.

    Usage::

        executor = ToolExecutor(registry)
        message, patch = executor.execute(call, context)
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    def execute(
        self, call: ToolCall, context: ToolContext
    ) -> tuple[Message, StatePatch | None]:
        """Execute ``call`` and wrap the outcome in a tool-result message.

        Returns:
            The tool-result message (correlated by ``call.id``) and the
            state patch the handler requested, if any.
        """
        tool = self._registry.get(call.name)
        if tool is None:
            return self._error(call, f"Unknown tool: {call.name}"), None
        if "_raw" in call.arguments and len(call.arguments) == 1:
            return self._error(
                call, f"Invalid arguments (not a JSON object): {call.arguments['_raw']}"
            ), None

        try:
            if tool.takes_context:
                result = tool.handler(context, **call.arguments)
            else:
                result = tool.handler(**call.arguments)
        except Exception as exc:
            logger.warning("Tool %s failed: %s", call.name, exc)
            logger.debug("Tool %s traceback", call.name, exc_info=True)
            return self._error(call, f"Error: {type(exc).__name__}: {exc}"), None

        if isinstance(result, ToolOutput):
            message = Message.tool(result.content, tool_call_id=call.id, name=call.name)
            return message, result.state_patch
        return Message.tool(str(result), tool_call_id=call.id, name=call.name), None

    @staticmethod
    def _error(call: ToolCall, text: str) -> Message:
        if not text.startswith("Error:"):
            text = f"Error: {text}"
        return Message.tool(text, tool_call_id=call.id, name=call.name)


class ToolDispatcher:
    """Executes one turn's tool calls and merges their state patches.

    Args:
        registry: Tools available to the session.
        max_workers: Thread pool size for runs of concurrency-safe calls.
    """

    def __init__(self, registry: ToolRegistry, max_workers: int = 4) -> None:
        self.registry = registry
        self.max_workers = max(1, max_workers)
        self._executor = ToolExecutor(registry)

    def segments(self, calls: Sequence[ToolCall]) -> list[tuple[bool, list[ToolCall]]]:
        """Split calls into runs of the same partition, keeping order.

        Returns:
            ``(safe, calls)`` pairs. Unsafe runs are executed sequentially,
            safe runs concurrently.
        """
        runs: list[tuple[bool, list[ToolCall]]] = []
        for call in calls:
            safe = self.registry.is_safe(call.name)
            if runs and runs[-1][0] == safe:
                runs[-1][1].append(call)
            else:
                runs.append((safe, [call]))
        return runs

    def dispatch(self, calls: Sequence[ToolCall], context: ToolContext) -> DispatchResult:
        """Execute ``calls`` and return their results in request order."""
        messages: list[Message] = []
        task_list = context.task_list
        patched = False

        for safe, run in self.segments(calls):
            if safe and len(run) > 1:
                outcomes = self._run_concurrently(run, context)
            else:
                outcomes = [None] * len(run)

            for index, call in enumerate(run):
                # Sequential calls see the patches of earlier ones.
                message, patch = outcomes[index] or self._executor.execute(call, context)
                messages.append(message)
                if patch is not None and patch.task_list is not None:
                    task_list = tuple(reduce_task_list(task_list, patch.task_list))
                    context = replace(context, task_list=task_list)
                    patched = True

        return DispatchResult(
            messages=tuple(messages),
            task_list=task_list if patched else None,
        )

    def _run_concurrently(
        self, calls: list[ToolCall], context: ToolContext
    ) -> list[tuple[Message, StatePatch | None]]:
        results: list[tuple[Message, StatePatch | None] | None] = [None] * len(calls)
        workers = min(self.max_workers, len(calls))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self._executor.execute, call, context): index
                for index, call in enumerate(calls)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        return [r for r in results if r is not None]
