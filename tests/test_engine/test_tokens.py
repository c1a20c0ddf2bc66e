"""Tests for the token budget tracker."""

from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tether.engine.tokens import (
    CharEstimateCounter,
    TokenBudget,
    TokenUsage,
    usage_from_metadata,
)
from tether.models.message import Message

from tests.strategies import plain_message


class TestCharEstimateCounter:

    def test_empty_text_is_zero(self):
        assert CharEstimateCounter().count_text("") == 0

    def test_rounds_up(self):
        counter = CharEstimateCounter()
        assert counter.count_text("abcd") == 1
        assert counter.count_text("abcde") == 2


class TestUsageFromMetadata:

    def test_total_only(self):
        assert usage_from_metadata({"total_tokens": 120}) == 120

    def test_cache_creation_tokens_added(self):
        usage = {"total_tokens": 100, "cache_creation_tokens": 30}
        assert usage_from_metadata(usage) == 130

    def test_anthropic_cache_key_accepted(self):
        usage = {"total_tokens": 100, "cache_creation_input_tokens": 7}
        assert usage_from_metadata(usage) == 107

    def test_total_derived_from_anthropic_counts(self):
        usage = {"input_tokens": 90, "output_tokens": 10, "cache_creation_input_tokens": 5}
        assert usage_from_metadata(usage) == 105

    def test_missing_fields_count_as_zero(self):
        assert usage_from_metadata({}) == 0
        assert usage_from_metadata({"total_tokens": None}) == 0


class TestTokenBudget:

    def test_estimate_without_usage(self):
        """Three messages, 400 characters, no usage metadata."""
        messages = [
            Message.human("a" * 150),
            Message.assistant("b" * 150),
            Message.human("c" * 100),
        ]
        budget = TokenBudget(max_tokens=1000, compression_threshold=0.92)

        usage = budget.usage(messages)

        assert usage == TokenUsage(used=100, total=1000, percentage=0.1)
        assert budget.needs_compression(messages) is False

    def test_newest_usage_is_authoritative(self):
        messages = [
            Message.human("hi"),
            Message.assistant("first", usage={"total_tokens": 900}),
            Message.human("again"),
            Message.assistant("second", usage={"total_tokens": 300}),
            Message.human("x" * 10_000),
        ]
        budget = TokenBudget(max_tokens=1000)
        assert budget.usage(messages).used == 300

    def test_usage_on_non_assistant_ignored(self):
        messages = [
            Message.assistant("a", usage={"total_tokens": 50}),
            Message.human("b").model_copy(update={"usage": {"total_tokens": 999}}),
        ]
        assert TokenBudget(max_tokens=1000).usage(messages).used == 50

    def test_cache_tokens_count_toward_usage(self):
        messages = [
            Message.assistant(
                "a", usage={"total_tokens": 800, "cache_creation_tokens": 150}
            ),
        ]
        budget = TokenBudget(max_tokens=1000, compression_threshold=0.92)
        assert budget.usage(messages).used == 950
        assert budget.needs_compression(messages) is True

    def test_threshold_is_inclusive(self):
        messages = [Message.assistant("a", usage={"total_tokens": 920})]
        budget = TokenBudget(max_tokens=1000, compression_threshold=0.92)
        assert budget.needs_compression(messages) is True

    def test_just_below_threshold(self):
        messages = [Message.assistant("a", usage={"total_tokens": 919})]
        budget = TokenBudget(max_tokens=1000, compression_threshold=0.92)
        assert budget.needs_compression(messages) is False

    def test_empty_history(self):
        usage = TokenBudget(max_tokens=10).usage([])
        assert usage.used == 0
        assert usage.percentage == 0.0

    def test_invalid_max_tokens(self):
        with pytest.raises(ValueError, match="max_tokens"):
            TokenBudget(max_tokens=0)

    def test_custom_counter(self):
        class WordCounter:
            def count_text(self, text: str) -> int:
                return len(text.split())

        budget = TokenBudget(max_tokens=100, counter=WordCounter())
        assert budget.estimate([Message.human("one two three ")]) == 3

    @given(st.lists(plain_message, max_size=10), plain_message)
    def test_estimate_never_shrinks_when_appending(self, messages, extra):
        budget = TokenBudget(max_tokens=1000)
        before = budget.usage(messages).used
        after = budget.usage([*messages, extra]).used
        assert after >= before
