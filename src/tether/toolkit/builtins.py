"""Built-in tool definitions.

File and shell tools are rooted at a workspace directory; paths are
resolved against it and may not escape it. Handlers raise ``ToolError``
for expected failures and the executor turns any exception into a
tool-result message.

Handlers use explicit parameter lists (no ``**kwargs`` passthrough) so
hallucinated arguments fail loudly.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from tether.exceptions import TaskTransitionError, ToolError
from tether.operations.tasks import (
    check_transitions,
    format_task_list,
    parse_task_list,
    stamp_task_list,
)
from tether.toolkit.models import StatePatch, ToolDefinition, ToolOutput

if TYPE_CHECKING:
    from tether.toolkit.models import ToolContext

logger = logging.getLogger(__name__)

READ_FILE = "ReadFile"
WRITE_FILE = "WriteFile"
EDIT_FILE = "EditFile"
GREP = "Grep"
LIST_DIR = "ListDir"
BASH = "Bash"
TODO_READ = "TodoRead"
TODO_WRITE = "TodoWrite"
TASK = "Task"
ASK_HUMAN = "AskHuman"

DANGEROUS_TOOL_NAMES: frozenset[str] = frozenset({WRITE_FILE, EDIT_FILE, BASH})

BASH_TIMEOUT_SECONDS = 30
GREP_MAX_MATCHES = 200
_SKIP_DIRS = {".git", ".hg", ".svn", "__pycache__", "node_modules", ".venv"}

_TASK_ITEM_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Unique task id."},
        "name": {"type": "string", "description": "Short task name."},
        "description": {"type": "string", "description": "What the task involves."},
        "status": {
            "type": "string",
            "enum": ["pending", "in_progress", "completed", "failed", "blocked"],
        },
        "priority": {"type": "string", "enum": ["high", "medium", "low"]},
        "error": {
            "type": "string",
            "description": "Failure reason. Required when status is failed.",
        },
    },
    "required": ["id", "name", "status"],
}


def _resolve(root: Path, path: str) -> Path:
    """Resolve ``path`` against ``root`` and refuse anything outside it."""
    target = (root / path).resolve()
    if target != root and root not in target.parents:
        raise ToolError(f"Path is outside the workspace: {path}")
    return target


def _display(root: Path, path: Path) -> str:
    return str(path.relative_to(root)) if path != root else "."


def builtin_tools(
    workspace: str | os.PathLike[str],
    *,
    strict_task_transitions: bool = False,
    subagent: Callable[[str], str] | None = None,
) -> list[ToolDefinition]:
    """Build the built-in tools bound to ``workspace``.

    Args:
        workspace: Root directory for file and shell tools.
        strict_task_transitions: Make TodoWrite reject disallowed status
            changes instead of logging them.
        subagent: Runs a research prompt on a read-only sub-agent and
            returns its report. The Task tool is only included when given.

    Returns:
        Fresh ToolDefinition objects; nothing is cached at module level.
    """
    root = Path(workspace).resolve()

    def read_file(file_path: str) -> str:
        target = _resolve(root, file_path)
        if not target.is_file():
            raise ToolError(f"File not found: {file_path}")
        content = target.read_text(encoding="utf-8", errors="replace")
        return f"File content ({file_path}):\n{content}"

    def write_file(file_path: str, content: str) -> str:
        target = _resolve(root, file_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return f"Wrote {len(content)} characters to {file_path}"

    def edit_file(file_path: str, search_text: str, replace_text: str) -> str:
        target = _resolve(root, file_path)
        if not target.is_file():
            raise ToolError(f"File not found: {file_path}")
        content = target.read_text(encoding="utf-8")
        if search_text not in content:
            raise ToolError(f"Search text not found in {file_path}")
        target.write_text(content.replace(search_text, replace_text, 1), encoding="utf-8")
        return f"Edited {file_path}"

    def grep(pattern: str, file_path: str | None = None) -> str:
        try:
            regex = re.compile(pattern)
        except re.error as exc:
            raise ToolError(f"Invalid pattern {pattern!r}: {exc}") from exc

        base = _resolve(root, file_path) if file_path else root
        if base.is_file():
            files = [base]
        else:
            files = []
            for dirpath, dirnames, filenames in os.walk(base):
                dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
                files.extend(Path(dirpath) / name for name in sorted(filenames))

        matches: list[str] = []
        for path in files:
            try:
                lines = path.read_text(encoding="utf-8").splitlines()
            except (UnicodeDecodeError, OSError):
                continue
            for number, line in enumerate(lines, start=1):
                if regex.search(line):
                    matches.append(f"{_display(root, path)}:{number}: {line}")
                    if len(matches) >= GREP_MAX_MATCHES:
                        matches.append(f"(stopped after {GREP_MAX_MATCHES} matches)")
                        return "\n".join(matches)
        if not matches:
            return f"No matches for: {pattern}"
        return "\n".join(matches)

    def list_dir(dir_path: str = ".") -> str:
        target = _resolve(root, dir_path)
        if not target.is_dir():
            raise ToolError(f"Not a directory: {dir_path}")
        entries = sorted(target.iterdir(), key=lambda p: (not p.is_dir(), p.name))
        lines = [f"{'[DIR]' if p.is_dir() else '[FILE]'} {p.name}" for p in entries]
        return f"Directory listing ({dir_path}):\n" + "\n".join(lines)

    def bash(command: str) -> str:
        try:
            proc = subprocess.run(
                command,
                shell=True,
                cwd=root,
                capture_output=True,
                text=True,
                timeout=BASH_TIMEOUT_SECONDS,
            )
        except subprocess.TimeoutExpired as exc:
            raise ToolError(
                f"Command timed out after {BASH_TIMEOUT_SECONDS}s: {command}"
            ) from exc
        output = proc.stdout or proc.stderr or "Command completed"
        if proc.returncode != 0:
            return f"Exit code {proc.returncode}\n{output}"
        return output

    def todo_read(context: ToolContext) -> str:
        return "Current task list:\n" + format_task_list(context.task_list)

    def todo_write(context: ToolContext, todo_list: list[dict]) -> ToolOutput | str:
        proposed = parse_task_list(todo_list)
        if not proposed:
            return "No tasks given; task list unchanged."
        violations = check_transitions(context.task_list, proposed)
        if violations:
            if strict_task_transitions:
                raise TaskTransitionError(violations)
            logger.warning(
                "Task list write in session %s has unexpected transitions: %s",
                context.session_id,
                "; ".join(violations),
            )
        stamped = stamp_task_list(context.task_list, proposed)
        return ToolOutput(
            content=f"Task list updated. {len(stamped)} tasks.",
            state_patch=StatePatch(task_list=tuple(stamped)),
        )

    def ask_human(question: str) -> str:
        raise ToolError("AskHuman is answered through the review gate, not executed")

    tools = [
        ToolDefinition(
            name=READ_FILE,
            description="Read a text file from the workspace.",
            parameters={
                "type": "object",
                "properties": {
                    "file_path": {"type": "string", "description": "Path relative to the workspace."},
                },
                "required": ["file_path"],
            },
            handler=read_file,
            concurrency_safe=True,
        ),
        ToolDefinition(
            name=WRITE_FILE,
            description="Write content to a file, creating parent directories.",
            parameters={
                "type": "object",
                "properties": {
                    "file_path": {"type": "string", "description": "Path relative to the workspace."},
                    "content": {"type": "string", "description": "Full new file content."},
                },
                "required": ["file_path", "content"],
            },
            handler=write_file,
        ),
        ToolDefinition(
            name=EDIT_FILE,
            description="Replace the first occurrence of search_text in a file with replace_text.",
            parameters={
                "type": "object",
                "properties": {
                    "file_path": {"type": "string"},
                    "search_text": {"type": "string", "description": "Exact text to find."},
                    "replace_text": {"type": "string", "description": "Replacement text."},
                },
                "required": ["file_path", "search_text", "replace_text"],
            },
            handler=edit_file,
        ),
        ToolDefinition(
            name=GREP,
            description="Search files for lines matching a regular expression.",
            parameters={
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Python regular expression."},
                    "file_path": {
                        "type": "string",
                        "description": "Optional file or directory to search. Defaults to the workspace.",
                    },
                },
                "required": ["pattern"],
            },
            handler=grep,
            concurrency_safe=True,
        ),
        ToolDefinition(
            name=LIST_DIR,
            description="List the entries of a directory.",
            parameters={
                "type": "object",
                "properties": {
                    "dir_path": {"type": "string", "description": "Directory path. Defaults to the workspace root."},
                },
            },
            handler=list_dir,
            concurrency_safe=True,
        ),
        ToolDefinition(
            name=BASH,
            description=(
                f"Run a shell command in the workspace ({BASH_TIMEOUT_SECONDS}s timeout). "
                "Use with care."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Command line to run."},
                },
                "required": ["command"],
            },
            handler=bash,
        ),
        ToolDefinition(
            name=TODO_READ,
            description=(
                "Read the session's task list. Use it often: when starting, "
                "after finishing a task, or when unsure what to do next."
            ),
            parameters={"type": "object", "properties": {}},
            handler=todo_read,
            concurrency_safe=True,
            takes_context=True,
        ),
        ToolDefinition(
            name=TODO_WRITE,
            description=(
                "Replace the session's task list with an updated full list. "
                "Mark tasks in_progress when you start them and completed or "
                "failed (with an error) when done. Work through tasks in order "
                "and never mark incomplete work as completed."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "todo_list": {
                        "type": "array",
                        "items": _TASK_ITEM_SCHEMA,
                        "description": "The complete updated task list.",
                    },
                },
                "required": ["todo_list"],
            },
            handler=todo_write,
            takes_context=True,
        ),
        ToolDefinition(
            name=ASK_HUMAN,
            description=(
                "Ask the user a question when a requirement is ambiguous. "
                "The loop pauses until the user answers."
            ),
            parameters={
                "type": "object",
                "properties": {
                    "question": {"type": "string", "description": "The question to ask."},
                },
                "required": ["question"],
            },
            handler=ask_human,
        ),
    ]

    if subagent is not None:

        def task(prompt: str, description: str = "") -> str:
            if description:
                logger.info("Starting sub-agent: %s", description)
            report = subagent(prompt)
            return report or "(sub-agent returned no report)"

        tools.append(
            ToolDefinition(
                name=TASK,
                description=(
                    "Delegate a self-contained research task to a sub-agent with "
                    "read-only tools. Returns its final report."
                ),
                parameters={
                    "type": "object",
                    "properties": {
                        "prompt": {"type": "string", "description": "Full instructions for the sub-agent."},
                        "description": {"type": "string", "description": "Three to five word summary."},
                    },
                    "required": ["prompt"],
                },
                handler=task,
            )
        )

    return tools
