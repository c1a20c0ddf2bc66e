"""Tether exception hierarchy.

All Tether-specific exceptions inherit from TetherError.
"""


class TetherError(Exception):
    """Base exception for all Tether errors."""


class CheckpointError(TetherError):
    """Raised when a checkpoint cannot be written or read.

    Durability cannot be skipped silently, so this always reaches the caller.
    """


class SessionNotFoundError(TetherError):
    """Raised when a session id has no checkpoint."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class SessionBusyError(TetherError):
    """Raised when a second run is started on a session that is already running."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session is already running: {session_id}")


class CompressionError(TetherError):
    """Raised when context compression fails."""


class OrchestratorError(TetherError):
    """Raised when the orchestrator cannot continue a session."""


class ReviewPendingError(OrchestratorError):
    """Raised when new input arrives while a review is still outstanding."""

    def __init__(self, session_id: str, tool_name: str) -> None:
        self.session_id = session_id
        self.tool_name = tool_name
        super().__init__(
            f"Session {session_id} is awaiting review of {tool_name!r}. "
            f"Answer it with resume() before sending new input."
        )


class ReviewNotPendingError(OrchestratorError):
    """Raised when an answer is supplied but no review is outstanding."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} has no pending review")


class ToolError(TetherError):
    """Raised by tool handlers for expected failures (bad path, no match, ...)."""


class TaskTransitionError(ToolError):
    """Raised when a task list write contains disallowed status transitions."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__("Invalid task transitions: " + "; ".join(violations))
