"""Orchestrator package -- the agent loop and its configuration.

Provides the Orchestrator class, OrchestratorConfig, and the step and
routing types passed to ``on_step`` callbacks.
"""

from tether.orchestrator.config import OrchestratorConfig
from tether.orchestrator.loop import Orchestrator
from tether.orchestrator.models import Node, StepResult

__all__ = [
    "Node",
    "Orchestrator",
    "OrchestratorConfig",
    "StepResult",
]
