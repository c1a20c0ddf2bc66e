"""Texts used by the human review gate."""

from __future__ import annotations

import json
from typing import Sequence

APPROVE_KEYWORDS: tuple[str, ...] = ("同意", "approve")
REJECT_KEYWORDS: tuple[str, ...] = ("拒绝", "reject")


def build_review_prompt(calls: Sequence[tuple[str, dict]]) -> str:
    """Question shown to the operator for the gated calls of one turn."""
    blocks = []
    for tool_name, arguments in calls:
        args = json.dumps(arguments, indent=2, ensure_ascii=False)
        blocks.append(f"Tool: {tool_name}\nArguments: {args}")
    return (
        "Please confirm the following operation:\n"
        + "\n\n".join(blocks)
        + "\n\nReply with:\n"
        '- "approve" (or "同意") to execute it\n'
        '- "reject" (or "拒绝") to refuse it\n'
        "- anything else to ask for a different approach\n"
        "Answer with the keyword alone. Answers are matched by containment, so "
        'a reply such as "disapprove" or "不同意" counts as approval.'
    )


def approved_message(tool_name: str) -> str:
    return f"User approved the {tool_name} operation."


def rejected_message(tool_name: str) -> str:
    return f"User rejected the {tool_name} operation. Choose a different approach."


def modify_message(tool_name: str, feedback: str) -> str:
    return f"User asked to change the {tool_name} operation: {feedback}"


def question_result(question: str, answer: str) -> str:
    return f"Asked the user: {question}\nUser answered: {answer}"
