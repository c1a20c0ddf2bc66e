"""Tests for the built-in file, shell and task tools."""

from __future__ import annotations

import json
import sys
from datetime import datetime, timezone

import pytest

from tether.exceptions import TaskTransitionError, ToolError
from tether.models.tasks import Task, TaskStatus
from tether.toolkit import ToolContext, ToolOutput, ToolRegistry, builtin_tools
from tether.toolkit.builtins import DANGEROUS_TOOL_NAMES


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("import os\nprint('hello')\n", encoding="utf-8")
    (tmp_path / "README.md").write_text("# Demo\nhello world\n", encoding="utf-8")
    return tmp_path


@pytest.fixture
def tools(workspace) -> ToolRegistry:
    return ToolRegistry(builtin_tools(workspace))


def _run(tools: ToolRegistry, name: str, **arguments):
    tool = tools.get(name)
    if tool.takes_context:
        context = arguments.pop("context", ToolContext(session_id="s1"))
        return tool.handler(context, **arguments)
    return tool.handler(**arguments)


class TestRegistration:

    def test_partitions(self, tools):
        assert tools.safe_names() == {"ReadFile", "Grep", "ListDir", "TodoRead"}
        assert DANGEROUS_TOOL_NAMES == {"WriteFile", "EditFile", "Bash"}

    def test_task_tool_only_with_subagent(self, workspace):
        assert "Task" not in ToolRegistry(builtin_tools(workspace))
        registry = ToolRegistry(builtin_tools(workspace, subagent=lambda prompt: "report"))
        assert "Task" in registry
        assert _run(registry, "Task", prompt="look around") == "report"

    def test_fresh_definitions_per_call(self, workspace):
        assert builtin_tools(workspace)[0] is not builtin_tools(workspace)[0]


class TestFileTools:

    def test_read_file(self, tools):
        result = _run(tools, "ReadFile", file_path="README.md")
        assert result == "File content (README.md):\n# Demo\nhello world\n"

    def test_read_missing_file(self, tools):
        with pytest.raises(ToolError, match="File not found"):
            _run(tools, "ReadFile", file_path="nope.txt")

    def test_path_outside_workspace(self, tools):
        with pytest.raises(ToolError, match="outside the workspace"):
            _run(tools, "ReadFile", file_path="../secret.txt")

    def test_write_creates_parents(self, tools, workspace):
        _run(tools, "WriteFile", file_path="docs/new/guide.md", content="guide")
        assert (workspace / "docs" / "new" / "guide.md").read_text(encoding="utf-8") == "guide"

    def test_edit_replaces_first_occurrence(self, tools, workspace):
        (workspace / "twice.txt").write_text("a b a", encoding="utf-8")
        _run(tools, "EditFile", file_path="twice.txt", search_text="a", replace_text="c")
        assert (workspace / "twice.txt").read_text(encoding="utf-8") == "c b a"

    def test_edit_missing_text(self, tools):
        with pytest.raises(ToolError, match="not found"):
            _run(tools, "EditFile", file_path="README.md", search_text="zzz", replace_text="y")

    def test_list_dir_directories_first(self, tools):
        result = _run(tools, "ListDir")
        assert result.splitlines() == ["Directory listing (.):", "[DIR] src", "[FILE] README.md"]

    def test_list_dir_not_a_directory(self, tools):
        with pytest.raises(ToolError):
            _run(tools, "ListDir", dir_path="README.md")


class TestGrep:

    def test_matches_across_workspace(self, tools):
        result = _run(tools, "Grep", pattern="hello")
        assert "README.md:2: hello world" in result
        assert "src/app.py:2: print('hello')" in result

    def test_single_file(self, tools):
        result = _run(tools, "Grep", pattern="import", file_path="src/app.py")
        assert result == "src/app.py:1: import os"

    def test_no_matches(self, tools):
        assert _run(tools, "Grep", pattern="absent") == "No matches for: absent"

    def test_invalid_pattern(self, tools):
        with pytest.raises(ToolError, match="Invalid pattern"):
            _run(tools, "Grep", pattern="(")


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")
class TestBash:

    def test_runs_in_workspace(self, tools):
        assert "README.md" in _run(tools, "Bash", command="ls")

    def test_nonzero_exit(self, tools):
        result = _run(tools, "Bash", command="echo oops >&2; exit 3")
        assert result.startswith("Exit code 3\n")
        assert "oops" in result


class TestTodoTools:

    def test_read_empty(self, tools):
        assert _run(tools, "TodoRead") == "Current task list:\n[]"

    def test_read_lists_tasks(self, tools):
        context = ToolContext(session_id="s1", task_list=(Task(id="1", name="a"),))
        result = _run(tools, "TodoRead", context=context)
        assert json.loads(result.split("\n", 1)[1])[0]["id"] == "1"

    def test_write_returns_patch(self, tools):
        result = _run(
            tools,
            "TodoWrite",
            todo_list=[
                {"id": "1", "name": "scan", "status": "in_progress", "desc": "look"},
                {"id": "2", "name": "fix", "status": "pending"},
            ],
        )
        assert isinstance(result, ToolOutput)
        assert result.content == "Task list updated. 2 tasks."
        tasks = result.state_patch.task_list
        assert [t.id for t in tasks] == ["1", "2"]
        assert tasks[0].start_time is not None
        assert tasks[0].description == "look"

    def test_empty_write_is_noop(self, tools):
        assert _run(tools, "TodoWrite", todo_list=[]) == "No tasks given; task list unchanged."

    def test_write_with_duplicate_ids(self, tools):
        with pytest.raises(ToolError, match="Duplicate task ids"):
            _run(
                tools,
                "TodoWrite",
                todo_list=[
                    {"id": "1", "name": "scan", "status": "pending"},
                    {"id": "1", "name": "scan again", "status": "pending"},
                ],
            )

    def test_write_cannot_move_start_time(self, tools):
        started = datetime(2026, 1, 1, tzinfo=timezone.utc)
        context = ToolContext(
            session_id="s1",
            task_list=(
                Task(id="1", name="a", status=TaskStatus.IN_PROGRESS, start_time=started),
            ),
        )
        result = _run(
            tools,
            "TodoWrite",
            context=context,
            todo_list=[{
                "id": "1",
                "name": "a",
                "status": "in_progress",
                "start_time": "2030-05-05T00:00:00Z",
            }],
        )
        assert result.state_patch.task_list[0].start_time == started

    def test_transition_warning_is_lenient(self, tools):
        context = ToolContext(
            session_id="s1",
            task_list=(Task(id="1", name="a", status=TaskStatus.COMPLETED),),
        )
        result = _run(
            tools,
            "TodoWrite",
            context=context,
            todo_list=[{"id": "1", "name": "a", "status": "pending"}],
        )
        assert result.state_patch.task_list[0].status == TaskStatus.PENDING

    def test_strict_transitions(self, workspace):
        registry = ToolRegistry(builtin_tools(workspace, strict_task_transitions=True))
        context = ToolContext(
            session_id="s1",
            task_list=(Task(id="1", name="a", status=TaskStatus.COMPLETED),),
        )
        with pytest.raises(TaskTransitionError) as excinfo:
            _run(
                registry,
                "TodoWrite",
                context=context,
                todo_list=[{"id": "1", "name": "a", "status": "pending"}],
            )
        assert excinfo.value.violations == ["task '1': completed -> pending"]

    def test_ask_human_not_executable(self, tools):
        with pytest.raises(ToolError):
            _run(tools, "AskHuman", question="why?")
