"""Core agent loop.

The Orchestrator is a sequential state machine per session::

    compression_check -> model_call -> human_review | safe_tools | unsafe_tools | terminate

Tool steps return to the model call through the compression check.
``human_review`` persists the session and returns; ``resume()`` picks the
loop up again with the operator's answer. Every executed step is
checkpointed, so ``get_state_history()`` replays the whole run.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from typing import TYPE_CHECKING, Iterable, Iterator

from tether.engine.compression import ContextCompressor, splice_compressed
from tether.engine.tokens import TiktokenCounter, TokenBudget
from tether.exceptions import (
    CompressionError,
    OrchestratorError,
    ReviewNotPendingError,
    ReviewPendingError,
    SessionBusyError,
    SessionNotFoundError,
)
from tether.llm.client import message_from_response
from tether.llm.wire import to_openai_messages
from tether.models.message import Message, Role
from tether.models.state import SessionState, SessionStatus
from tether.operations.review import (
    ReviewDecision,
    calls_needing_review,
    open_approval,
    open_question,
    resolve_review,
    suspend,
)
from tether.orchestrator.config import OrchestratorConfig
from tether.orchestrator.models import Node, StepResult
from tether.prompts.system import AGENT_SYSTEM_PROMPT, SUBAGENT_SYSTEM_PROMPT
from tether.storage.memory import InMemoryCheckpointStore
from tether.toolkit.builtins import ASK_HUMAN, builtin_tools
from tether.toolkit.executor import ToolDispatcher
from tether.toolkit.models import ToolContext
from tether.toolkit.registry import ToolRegistry

if TYPE_CHECKING:
    import os

    from tether.llm.protocols import LLMClient
    from tether.models.message import ToolCall
    from tether.protocols import TokenCounter
    from tether.storage.repositories import CheckpointStore
    from tether.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)

_CANCEL_POLL_SECONDS = 0.05


class _ModelCallCancelled(Exception):
    """Raised internally when the cancel event fires during a model call."""


class Orchestrator:
    """Runs the agent loop for any number of sessions.

    Dependencies are injected; nothing is read from module-level state, so
    several orchestrators with different clients, tools and stores can run
    side by side.

    Usage::

        orch = Orchestrator.with_builtin_tools(OpenAIClient(), "./workspace",
                                               store=SqlCheckpointStore("tether.db"))
        state = orch.invoke("Add a README")
        if state.status == SessionStatus.AWAITING_REVIEW:
            print(state.pending_review.prompt)
            state = orch.resume(state.session_id, "approve")

    Args:
        llm: Client implementing the LLMClient protocol.
        tools: A ToolRegistry or an iterable of ToolDefinitions.
        store: Checkpoint store. Defaults to an in-memory store.
        config: Loop configuration. Defaults to ``OrchestratorConfig()``.
        counter: Token counter for usage estimates. Overrides
            ``config.tokenizer_encoding``.
    """

    def __init__(
        self,
        llm: LLMClient,
        tools: ToolRegistry | Iterable[ToolDefinition] | None = None,
        store: CheckpointStore | None = None,
        config: OrchestratorConfig | None = None,
        *,
        counter: TokenCounter | None = None,
    ) -> None:
        self._llm = llm
        self.config = config or OrchestratorConfig()
        if isinstance(tools, ToolRegistry):
            self.registry = tools
        else:
            self.registry = ToolRegistry(tools or ())
        self._store = store or InMemoryCheckpointStore()

        if counter is None and self.config.tokenizer_encoding:
            counter = TiktokenCounter(encoding_name=self.config.tokenizer_encoding)
        self._counter = counter
        self.budget = TokenBudget(
            max_tokens=self.config.max_tokens,
            compression_threshold=self.config.compression_threshold,
            counter=counter,
        )
        self._compressor = ContextCompressor(
            llm,
            self.budget,
            char_window=self.config.compressor_char_window,
            preview_chars=self.config.summary_preview_chars,
            keep_recent=self.config.recent_messages_kept_on_compression,
            model=self.config.model,
        )
        self._dispatcher = ToolDispatcher(self.registry, self.config.max_tool_workers)

        self._active_lock = threading.Lock()
        self._active: set[str] = set()

    @classmethod
    def with_builtin_tools(
        cls,
        llm: LLMClient,
        workspace: str | os.PathLike[str],
        store: CheckpointStore | None = None,
        config: OrchestratorConfig | None = None,
        **kwargs,
    ) -> Orchestrator:
        """Build an orchestrator with the built-in tools rooted at ``workspace``.

        The Task tool is wired to ``run_subagent`` of the new orchestrator.
        """
        orchestrator = cls(llm, None, store, config, **kwargs)
        for tool in builtin_tools(
            workspace,
            strict_task_transitions=orchestrator.config.strict_task_transitions,
            subagent=orchestrator.run_subagent,
        ):
            orchestrator.registry.register(tool)
        return orchestrator

    @property
    def store(self) -> CheckpointStore:
        return self._store

    # ------------------------------------------------------------------
    # Session entry points
    # ------------------------------------------------------------------

    def invoke(
        self,
        user_input: str,
        session_id: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> SessionState:
        """Append ``user_input`` to a session and run the loop.

        Args:
            user_input: The human message.
            session_id: Existing or new session id. Generated when omitted.
            cancel: Setting this event aborts the run before the next model
                call, or during one, without appending anything.

        Returns:
            The final state: completed, awaiting review, error,
            iteration limit or cancelled.

        Raises:
            ReviewPendingError: If the session is awaiting review.
            SessionBusyError: If the session is already running.
            CheckpointError: If the state cannot be persisted.
        """
        session_id = session_id or uuid.uuid4().hex
        with self._claim(session_id):
            state = self._store.load(session_id) or SessionState(session_id=session_id)
            if state.requires_human_review and state.pending_review is not None:
                raise ReviewPendingError(session_id, state.pending_review.tool_name)
            state = state.appended(Message.human(user_input), iterations=0)
            self._store.save(session_id, state)
            return self._run(state, Node.COMPRESSION_CHECK, cancel)

    def resume(
        self,
        session_id: str,
        answer: str | None = None,
        *,
        cancel: threading.Event | None = None,
    ) -> SessionState:
        """Continue a suspended session.

        With a pending review, ``answer`` resolves it: approval executes the
        gated tool calls, rejection or any other text goes back to the model,
        and an AskHuman answer becomes that call's result.

        Without a pending review, the loop continues from where it stopped
        (iteration limit, cancellation or error).

        Raises:
            SessionNotFoundError: If the session has no checkpoint.
            OrchestratorError: If a review is pending and ``answer`` is None.
            ReviewNotPendingError: If ``answer`` is given but nothing awaits it.
            SessionBusyError: If the session is already running.
        """
        with self._claim(session_id):
            state = self._require(session_id)

            if state.requires_human_review and state.pending_review is not None:
                if answer is None:
                    raise OrchestratorError(
                        f"Session {session_id} is awaiting review of "
                        f"{state.pending_review.tool_name!r}; an answer is required"
                    )
                state, decision = resolve_review(state, answer)
                state = state.updated(iterations=0)
                self._store.save(session_id, state)
                if decision == ReviewDecision.APPROVE:
                    node = self._tool_node(state)
                elif decision == ReviewDecision.ANSWERED:
                    node = self._continue_node(state)
                else:
                    node = Node.COMPRESSION_CHECK
                return self._run(state, node, cancel)

            if answer is not None:
                raise ReviewNotPendingError(session_id)

            state = state.updated(iterations=0)
            if state.status == SessionStatus.ERROR:
                state = state.updated(status=SessionStatus.ERROR_HANDLED)
                self._store.save(session_id, state)
                node = Node.COMPRESSION_CHECK
            else:
                node = self._continue_node(state)
            return self._run(state, node, cancel)

    def get_state(self, session_id: str) -> SessionState:
        """Latest checkpoint of a session.

        Raises:
            SessionNotFoundError: If the session has no checkpoint.
        """
        return self._require(session_id)

    def get_state_history(self, session_id: str) -> list[SessionState]:
        """Every checkpoint of a session, oldest first."""
        return self._store.history(session_id)

    def reset(self, session_id: str) -> SessionState:
        """Clear a session's review gate and mark it ``reset``.

        History and tasks are kept. Calls that were awaiting approval stay
        unexecuted.
        """
        with self._claim(session_id):
            state = self._require(session_id)
            state = state.updated(
                status=SessionStatus.RESET,
                requires_human_review=False,
                pending_review=None,
                iterations=0,
            )
            self._store.save(session_id, state)
            logger.info("Session %s reset", session_id)
            return state

    def clear_session(self, session_id: str) -> int:
        """Delete every checkpoint of a session. Returns the count removed."""
        with self._claim(session_id):
            removed = self._store.delete(session_id)
        logger.info("Session %s cleared (%d checkpoints)", session_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route(self, state: SessionState) -> Node:
        """Decide where the latest assistant message sends the loop.

        No pending calls terminates. An AskHuman call or any call needing
        approval goes to review, since one approval covers the whole turn.
        Otherwise the first call's partition picks the tool step.
        """
        calls = state.pending_tool_calls()
        if not calls:
            return Node.TERMINATE
        if self._question_call(calls) is not None:
            return Node.HUMAN_REVIEW
        if calls_needing_review(calls, self.config.dangerous_tool_names):
            return Node.HUMAN_REVIEW
        return Node.SAFE_TOOLS if self.registry.is_safe(calls[0].name) else Node.UNSAFE_TOOLS

    def _tool_node(self, state: SessionState) -> Node:
        calls = self._executable_calls(state)
        if not calls:
            return Node.COMPRESSION_CHECK
        return Node.SAFE_TOOLS if self.registry.is_safe(calls[0].name) else Node.UNSAFE_TOOLS

    def _continue_node(self, state: SessionState) -> Node:
        """Where a session without a pending review picks up."""
        last = state.last_message
        if last is None:
            return Node.TERMINATE
        if last.role == Role.HUMAN:
            return Node.COMPRESSION_CHECK
        node = self.route(state)
        if node == Node.TERMINATE and last.role == Role.TOOL:
            return Node.COMPRESSION_CHECK
        return node

    def _question_call(self, calls: Iterable[ToolCall]) -> ToolCall | None:
        if ASK_HUMAN not in self.registry:
            return None
        return next((call for call in calls if call.name == ASK_HUMAN), None)

    def _executable_calls(self, state: SessionState) -> list[ToolCall]:
        questions = ASK_HUMAN in self.registry
        return [
            call
            for call in state.pending_tool_calls()
            if not (questions and call.name == ASK_HUMAN)
        ]

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def _run(
        self,
        state: SessionState,
        node: Node,
        cancel: threading.Event | None,
    ) -> SessionState:
        step = 0
        while node != Node.TERMINATE:
            if (
                cancel is not None
                and cancel.is_set()
                and node in (Node.COMPRESSION_CHECK, Node.MODEL_CALL)
            ):
                state = self._cancelled(state)
                break

            if node == Node.COMPRESSION_CHECK:
                checked = self._compression_check(state)
                if checked is state:
                    node = Node.MODEL_CALL
                    continue
                state, next_node = checked, Node.MODEL_CALL
            elif node == Node.MODEL_CALL:
                state = self._model_call(state, cancel)
                next_node = self._after_model_call_node(state)
                if state.status == SessionStatus.MODEL_CALLED:
                    if next_node == Node.TERMINATE:
                        state = state.updated(status=SessionStatus.COMPLETED)
                    elif state.iterations >= self.config.max_loop_iterations:
                        logger.warning(
                            "Session %s hit the iteration limit (%d model calls)",
                            state.session_id,
                            state.iterations,
                        )
                        state = state.updated(status=SessionStatus.ITERATION_LIMIT)
                        next_node = Node.TERMINATE
            elif node == Node.HUMAN_REVIEW:
                state, next_node = self._open_review(state), Node.TERMINATE
            else:
                state, next_node = self._execute_tools(state), Node.COMPRESSION_CHECK

            self._store.save(state.session_id, state)
            step += 1
            logger.debug(
                "Session %s step %d: %s -> %s (%s)",
                state.session_id,
                step,
                node.value,
                next_node.value,
                state.status.value,
            )
            self._notify(
                StepResult(
                    session_id=state.session_id,
                    step=step,
                    node=node,
                    status=state.status,
                    next_node=next_node,
                    message_count=len(state.messages),
                )
            )
            node = next_node
        return state

    def _after_model_call_node(self, state: SessionState) -> Node:
        if state.status != SessionStatus.MODEL_CALLED:
            return Node.TERMINATE
        return self.route(state)

    def _cancelled(self, state: SessionState) -> SessionState:
        logger.info("Session %s cancelled", state.session_id)
        state = state.updated(status=SessionStatus.CANCELLED)
        self._store.save(state.session_id, state)
        return state

    def _notify(self, result: StepResult) -> None:
        if self.config.on_step is None:
            return
        try:
            self.config.on_step(result)
        except Exception:
            logger.debug("on_step callback error", exc_info=True)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _compression_check(self, state: SessionState) -> SessionState:
        """Compress when the budget says so. Returns ``state`` itself if not."""
        if not self.budget.needs_compression(state.messages):
            return state
        try:
            result = self._compressor.compress(state.messages)
        except CompressionError as exc:
            logger.warning("Compression failed for session %s: %s", state.session_id, exc)
            return state.updated(status=SessionStatus.COMPRESSION_FAILED)

        messages = splice_compressed(
            state.messages, result, self.config.recent_messages_kept_on_compression
        )
        return state.updated(
            messages=messages,
            compression_history=[*state.compression_history, result.record],
            status=SessionStatus.COMPRESSED,
        )

    def _model_call(
        self, state: SessionState, cancel: threading.Event | None
    ) -> SessionState:
        request = to_openai_messages(
            state.messages,
            system_prompt=self.config.system_prompt or AGENT_SYSTEM_PROMPT,
        )
        iterations = state.iterations + 1
        try:
            response = self._call_llm(request, cancel)
            message = message_from_response(response)
        except _ModelCallCancelled:
            logger.info("Model call for session %s abandoned", state.session_id)
            return state.updated(status=SessionStatus.CANCELLED)
        except Exception as exc:
            logger.warning("Model call failed for session %s: %s", state.session_id, exc)
            return state.appended(
                Message.assistant(f"Model call failed: {exc}"),
                status=SessionStatus.ERROR,
                iterations=iterations,
            )
        return state.appended(
            message,
            status=SessionStatus.MODEL_CALLED,
            iterations=iterations,
        )

    def _call_llm(self, messages: list[dict], cancel: threading.Event | None) -> dict:
        kwargs: dict = {}
        if len(self.registry):
            kwargs["tools"] = self.registry.schemas()
        if self.config.model:
            kwargs["model"] = self.config.model
        if self.config.temperature is not None:
            kwargs["temperature"] = self.config.temperature
        if self.config.response_max_tokens is not None:
            kwargs["max_tokens"] = self.config.response_max_tokens
        if self.config.extra_llm_kwargs:
            kwargs.update(self.config.extra_llm_kwargs)

        if cancel is None:
            return self._llm.chat(messages, **kwargs)

        pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="tether-model"
        )
        try:
            future = pool.submit(self._llm.chat, messages, **kwargs)
            while True:
                try:
                    return future.result(timeout=_CANCEL_POLL_SECONDS)
                except concurrent.futures.TimeoutError:
                    if cancel.is_set():
                        future.cancel()
                        raise _ModelCallCancelled() from None
        finally:
            pool.shutdown(wait=False)

    def _open_review(self, state: SessionState) -> SessionState:
        calls = state.pending_tool_calls()
        question = self._question_call(calls)
        if question is not None:
            review = open_question(question)
        else:
            review = open_approval(
                calls_needing_review(calls, self.config.dangerous_tool_names)
            )
        logger.info(
            "Session %s awaiting %s for %s",
            state.session_id,
            review.kind,
            review.tool_name,
        )
        return suspend(state, review)

    def _execute_tools(self, state: SessionState) -> SessionState:
        calls = self._executable_calls(state)
        context = ToolContext(session_id=state.session_id, task_list=tuple(state.task_list))
        result = self._dispatcher.dispatch(calls, context)
        changes: dict = {"status": SessionStatus.TOOLS_EXECUTED}
        if result.task_list is not None:
            changes["task_list"] = list(result.task_list)
        return state.appended(*result.messages, **changes)

    # ------------------------------------------------------------------
    # Sub-agents
    # ------------------------------------------------------------------

    def run_subagent(self, prompt: str) -> str:
        """Run ``prompt`` on a nested orchestrator with the safe tools only.

        The sub-agent gets its own in-memory store and session; nothing it
        does is checkpointed here. Returns its final assistant text.
        """
        safe = self.registry.subset(sorted(self.registry.safe_names()))
        sub = Orchestrator(
            self._llm,
            safe,
            InMemoryCheckpointStore(),
            replace(
                self.config,
                system_prompt=SUBAGENT_SYSTEM_PROMPT,
                dangerous_tool_names=set(),
                on_step=None,
            ),
            counter=self._counter,
        )
        final = sub.invoke(prompt)
        if final.status != SessionStatus.COMPLETED:
            logger.warning("Sub-agent stopped with status %s", final.status.value)
        message = final.latest_assistant_message()
        return message.content if message else ""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, session_id: str) -> SessionState:
        state = self._store.load(session_id)
        if state is None:
            raise SessionNotFoundError(session_id)
        return state

    @contextmanager
    def _claim(self, session_id: str) -> Iterator[None]:
        """Hold the single-writer slot of ``session_id``."""
        with self._active_lock:
            if session_id in self._active:
                raise SessionBusyError(session_id)
            self._active.add(session_id)
        try:
            yield
        finally:
            with self._active_lock:
                self._active.discard(session_id)
