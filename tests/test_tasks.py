"""Tests for task list operations: reducer, stamping and transitions."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import given
from pydantic import ValidationError

from tether.exceptions import ToolError
from tether.models.tasks import Task, TaskStatus
from tether.operations.tasks import (
    check_transitions,
    format_task_list,
    parse_task_list,
    reduce_task_list,
    stamp_task_list,
    task_stats,
)

from tests.strategies import task_list

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(minutes=5)


def _task(task_id: str, status: TaskStatus = TaskStatus.PENDING, **kwargs) -> Task:
    return Task(id=task_id, name=f"task {task_id}", status=status, **kwargs)


class TestReduceTaskList:

    @given(task_list)
    def test_empty_write_keeps_old(self, old):
        assert reduce_task_list(old, []) == old
        assert reduce_task_list(old, None) == old

    @given(task_list, task_list)
    def test_non_empty_write_replaces(self, old, new):
        if new:
            assert reduce_task_list(old, new) == new

    def test_no_per_task_merge(self):
        old = [_task("1"), _task("2")]
        new = [_task("3")]
        assert reduce_task_list(old, new) == [_task("3")]


class TestStampTaskList:

    def test_in_progress_gets_start_time(self):
        stamped = stamp_task_list([], [_task("1", TaskStatus.IN_PROGRESS)], now=T0)
        assert stamped[0].start_time == T0
        assert stamped[0].end_time is None

    def test_pending_gets_no_times(self):
        stamped = stamp_task_list([], [_task("1")], now=T0)
        assert stamped[0].start_time is None
        assert stamped[0].end_time is None

    def test_start_time_carried_forward(self):
        old = [_task("1", TaskStatus.IN_PROGRESS, start_time=T0)]
        stamped = stamp_task_list(old, [_task("1", TaskStatus.COMPLETED)], now=T1)
        assert stamped[0].start_time == T0
        assert stamped[0].end_time == T1

    def test_failed_is_terminal(self):
        stamped = stamp_task_list([], [_task("1", TaskStatus.FAILED, error="boom")], now=T1)
        assert stamped[0].end_time == T1
        assert stamped[0].error == "boom"

    def test_write_timestamps_ignored_for_new_task(self):
        new = [_task("1", TaskStatus.IN_PROGRESS, start_time=T0, end_time=T1)]
        stamped = stamp_task_list([], new, now=T1)
        assert stamped[0].start_time == T1
        assert stamped[0].end_time is None

    def test_stored_start_time_beats_write(self):
        old = [_task("1", TaskStatus.IN_PROGRESS, start_time=T0)]
        later = datetime(2030, 5, 5, tzinfo=timezone.utc)
        new = [_task("1", TaskStatus.IN_PROGRESS, start_time=later)]
        assert stamp_task_list(old, new, now=T1)[0].start_time == T0

    def test_stored_end_time_beats_write(self):
        old = [_task("1", TaskStatus.COMPLETED, start_time=T0, end_time=T0)]
        new = [_task("1", TaskStatus.COMPLETED, end_time=T1)]
        stamped = stamp_task_list(old, new, now=T1)
        assert stamped[0].start_time == T0
        assert stamped[0].end_time == T0

    def test_second_in_progress_keeps_start_time(self):
        old = [_task("1", TaskStatus.BLOCKED, start_time=T0)]
        stamped = stamp_task_list(old, [_task("1", TaskStatus.IN_PROGRESS)], now=T1)
        assert stamped[0].start_time == T0

    def test_reverted_task_keeps_end_time(self):
        done = [_task("1", TaskStatus.COMPLETED, start_time=T0, end_time=T0)]
        reverted = stamp_task_list(done, [_task("1", TaskStatus.IN_PROGRESS)], now=T1)
        assert reverted[0].end_time == T0
        again = stamp_task_list(reverted, [_task("1", TaskStatus.COMPLETED)], now=T1)
        assert again[0].end_time == T0

    def test_stamping_is_idempotent(self):
        new = [_task("1", TaskStatus.IN_PROGRESS), _task("2", TaskStatus.COMPLETED)]
        once = stamp_task_list([], new, now=T0)
        twice = stamp_task_list(once, once, now=T1)
        assert twice == once

    def test_order_follows_write(self):
        new = [_task("b"), _task("a")]
        assert [t.id for t in stamp_task_list([], new, now=T0)] == ["b", "a"]


class TestCheckTransitions:

    @pytest.mark.parametrize(
        "before, after",
        [
            (TaskStatus.PENDING, TaskStatus.IN_PROGRESS),
            (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED),
            (TaskStatus.IN_PROGRESS, TaskStatus.FAILED),
            (TaskStatus.IN_PROGRESS, TaskStatus.BLOCKED),
            (TaskStatus.BLOCKED, TaskStatus.IN_PROGRESS),
            (TaskStatus.COMPLETED, TaskStatus.COMPLETED),
        ],
    )
    def test_allowed(self, before, after):
        assert check_transitions([_task("1", before)], [_task("1", after)]) == []

    @pytest.mark.parametrize(
        "before, after",
        [
            (TaskStatus.COMPLETED, TaskStatus.PENDING),
            (TaskStatus.FAILED, TaskStatus.IN_PROGRESS),
            (TaskStatus.PENDING, TaskStatus.COMPLETED),
        ],
    )
    def test_disallowed(self, before, after):
        violations = check_transitions([_task("1", before)], [_task("1", after)])
        assert violations == [f"task '1': {before.value} -> {after.value}"]

    def test_new_tasks_unchecked(self):
        assert check_transitions([], [_task("9", TaskStatus.COMPLETED)]) == []


class TestParseTaskList:

    def test_desc_alias(self):
        tasks = parse_task_list([{"id": "1", "name": "n", "status": "pending", "desc": "d"}])
        assert tasks[0].description == "d"

    def test_invalid_status(self):
        with pytest.raises(ValidationError):
            parse_task_list([{"id": "1", "name": "n", "status": "done"}])

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ToolError, match="Duplicate task ids: 1"):
            parse_task_list([
                {"id": "1", "name": "a", "status": "pending"},
                {"id": "2", "name": "b", "status": "pending"},
                {"id": "1", "name": "c", "status": "in_progress"},
            ])


class TestFormatting:

    def test_format_task_list_is_json(self):
        text = format_task_list([_task("1", priority="high")])
        assert json.loads(text) == [
            {"id": "1", "name": "task 1", "description": "", "status": "pending", "priority": "high"}
        ]

    def test_task_stats(self):
        stats = task_stats([
            _task("1"),
            _task("2", TaskStatus.COMPLETED),
            _task("3", TaskStatus.COMPLETED),
        ])
        assert stats["pending"] == 1
        assert stats["completed"] == 2
        assert stats["blocked"] == 0
        assert stats["total"] == 3
