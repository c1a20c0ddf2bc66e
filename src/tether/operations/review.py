"""Human review gate.

A review suspends the loop: the orchestrator stores a ``PendingReview``
on the session, checkpoints, and returns. A later ``resume`` call hands the
operator's answer to ``resolve_review``, which appends the resulting
message and clears the gate. Nothing here blocks a thread.
"""

from __future__ import annotations

import enum
import logging
from typing import AbstractSet, Sequence

from tether.exceptions import ReviewNotPendingError
from tether.models.message import Message, ToolCall
from tether.models.state import PendingReview, SessionState, SessionStatus
from tether.prompts.review import (
    APPROVE_KEYWORDS,
    REJECT_KEYWORDS,
    approved_message,
    build_review_prompt,
    modify_message,
    question_result,
    rejected_message,
)

logger = logging.getLogger(__name__)


class ReviewDecision(str, enum.Enum):
    """Outcome of a resolved review."""

    APPROVE = "approve"
    REJECT = "reject"
    MODIFY = "modify"
    ANSWERED = "answered"


def classify_answer(answer: str) -> ReviewDecision:
    """Classify an approval answer by case-insensitive containment.

    Approval keywords win over rejection keywords; anything else is
    feedback asking for a different approach.
    """
    text = answer.casefold()
    if any(keyword in text for keyword in APPROVE_KEYWORDS):
        return ReviewDecision.APPROVE
    if any(keyword in text for keyword in REJECT_KEYWORDS):
        return ReviewDecision.REJECT
    return ReviewDecision.MODIFY


def calls_needing_review(
    calls: Sequence[ToolCall], dangerous: AbstractSet[str]
) -> list[ToolCall]:
    """The calls of a turn whose tool is in the dangerous set."""
    return [call for call in calls if call.name in dangerous]


def open_approval(calls: Sequence[ToolCall]) -> PendingReview:
    """Build the approval request for the gated calls of one turn.

    The review is keyed on the first gated call; the prompt lists them all.
    """
    first = calls[0]
    return PendingReview(
        kind="approval",
        tool_call_id=first.id,
        tool_name=first.name,
        arguments=dict(first.arguments),
        prompt=build_review_prompt([(call.name, call.arguments) for call in calls]),
    )


def open_question(call: ToolCall) -> PendingReview:
    """Build the review entry for an AskHuman call."""
    question = str(call.arguments.get("question", "")).strip()
    return PendingReview(
        kind="question",
        tool_call_id=call.id,
        tool_name=call.name,
        arguments=dict(call.arguments),
        prompt=question or "The assistant needs your input.",
    )


def suspend(state: SessionState, review: PendingReview) -> SessionState:
    return state.updated(
        requires_human_review=True,
        pending_review=review,
        status=SessionStatus.AWAITING_REVIEW,
    )


def resolve_review(state: SessionState, answer: str) -> tuple[SessionState, ReviewDecision]:
    """Apply the operator's answer to the session's pending review.

    Returns the new state with the review cleared and the decision, which
    tells the caller where to route next:

    - APPROVE: execute the turn's pending tool calls.
    - REJECT, MODIFY: call the model again.
    - ANSWERED (AskHuman): the answer was recorded as the tool result.

    Raises:
        ReviewNotPendingError: If the session has no pending review.
    """
    review = state.pending_review
    if review is None or not state.requires_human_review:
        raise ReviewNotPendingError(state.session_id)

    if review.kind == "question":
        decision = ReviewDecision.ANSWERED
        message = Message.tool(
            question_result(review.prompt, answer),
            tool_call_id=review.tool_call_id,
            name=review.tool_name,
        )
    else:
        decision = classify_answer(answer)
        if decision == ReviewDecision.APPROVE:
            message = Message.human(approved_message(review.tool_name))
        elif decision == ReviewDecision.REJECT:
            message = Message.human(rejected_message(review.tool_name))
        else:
            message = Message.human(modify_message(review.tool_name, answer))

    logger.debug(
        "Review of %s in session %s resolved: %s",
        review.tool_name,
        state.session_id,
        decision.value,
    )
    new_state = state.appended(
        message,
        requires_human_review=False,
        pending_review=None,
    )
    return new_state, decision
