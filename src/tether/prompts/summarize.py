"""Summarization prompt for context compression.

The summary is requested in eight fixed sections so that a conversation
can continue from the summary alone.
"""

from __future__ import annotations

COMPRESSION_PROMPT: str = (
    "Your task is to create a detailed summary of the conversation so far, "
    "paying close attention to the user's explicit requests and your previous "
    "actions. The summary must capture the technical details, code patterns and "
    "decisions needed to continue the work without losing context.\n\n"
    "Before the final summary, wrap your analysis in <analysis> tags.\n\n"
    "Your summary must contain these sections:\n\n"
    "1. **Primary Request and Intent**: every explicit request and intent of the "
    "user, in detail.\n"
    "2. **Key Technical Concepts**: technologies, frameworks and concepts discussed.\n"
    "3. **Files and Code Sections**: files and code examined, modified or created, "
    "with snippets for the most recent changes.\n"
    "4. **Errors and Fixes**: errors encountered and how they were fixed, including "
    "user feedback on them.\n"
    "5. **Problem Solving**: problems solved and troubleshooting still in progress.\n"
    "6. **All User Messages**: every user message that is not a tool result, "
    "verbatim.\n"
    "7. **Pending Tasks**: tasks the user explicitly asked for that are not done.\n"
    "8. **Current Work and Next Step**: what was being worked on immediately before "
    "this summary, and the next step that follows from it."
)

SUMMARY_PREFIX: str = "[COMPRESSED SUMMARY]"


def build_compression_prompt(conversation_text: str) -> str:
    """Build the single user prompt sent to the summarizer.

    Args:
        conversation_text: The rendered history, one ``[n] Role: text``
            block per message.

    Returns:
        The formatted prompt string.
    """
    return f"{COMPRESSION_PROMPT}\n\nConversation to summarize:\n{conversation_text}"
