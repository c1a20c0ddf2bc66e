"""Tests for OrchestratorConfig defaults and environment loading."""

from __future__ import annotations

import pytest

from tether.orchestrator import OrchestratorConfig
from tether.toolkit import DANGEROUS_TOOL_NAMES


class TestDefaults:

    def test_documented_defaults(self):
        config = OrchestratorConfig()
        assert config.max_tokens == 128_000
        assert config.compression_threshold == 0.92
        assert config.recent_messages_kept_on_compression == 5
        assert config.max_loop_iterations == 25
        assert config.dangerous_tool_names == {"WriteFile", "EditFile", "Bash"}

    def test_dangerous_set_not_shared(self):
        config = OrchestratorConfig()
        config.dangerous_tool_names.add("ReadFile")
        assert "ReadFile" not in DANGEROUS_TOOL_NAMES
        assert "ReadFile" not in OrchestratorConfig().dangerous_tool_names


class TestFromEnv:

    def test_reads_prefixed_variables(self):
        config = OrchestratorConfig.from_env({
            "TETHER_MAX_TOKENS": "64000",
            "TETHER_COMPRESSION_THRESHOLD": "0.8",
            "TETHER_MAX_LOOP_ITERATIONS": "10",
            "TETHER_MODEL": "gpt-4o",
            "TETHER_STRICT_TASK_TRANSITIONS": "yes",
            "TETHER_DANGEROUS_TOOL_NAMES": "Bash, WriteFile",
        })
        assert config.max_tokens == 64000
        assert config.compression_threshold == 0.8
        assert config.max_loop_iterations == 10
        assert config.model == "gpt-4o"
        assert config.strict_task_transitions is True
        assert config.dangerous_tool_names == {"Bash", "WriteFile"}

    def test_empty_values_keep_defaults(self):
        config = OrchestratorConfig.from_env({"TETHER_MAX_TOKENS": "  "})
        assert config.max_tokens == 128_000

    def test_overrides_win(self):
        config = OrchestratorConfig.from_env({"TETHER_MAX_TOKENS": "64000"}, max_tokens=1000)
        assert config.max_tokens == 1000

    def test_bad_number(self):
        with pytest.raises(ValueError, match="TETHER_MAX_TOKENS"):
            OrchestratorConfig.from_env({"TETHER_MAX_TOKENS": "lots"})

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("TETHER_MAX_LOOP_ITERATIONS", "7")
        assert OrchestratorConfig.from_env().max_loop_iterations == 7
