"""Errors raised while driving an assistant turn."""
from __future__ import annotations

from typing import Any


class AlreadyRunning(Exception):
    """A run is still active on the thread; the new turn is dropped silently."""

    def __init__(self, run: Any) -> None:
        super().__init__(f"run {getattr(run, 'id', run)} is already active")
        self.run = run


class RunTerminalError(Exception):
    """The run ended in a non-successful terminal state."""

    def __init__(self, status: str, run: Any = None) -> None:
        super().__init__(status)
        self.status = status
        self.run = run


class NoActionableToolCalls(Exception):
    """The run asked for action but carried no function calls."""

    def __init__(self) -> None:
        super().__init__("No function tool calls in required action")


class AppendConflict(Exception):
    """The backend refused a new message because a run is still active."""

    def __init__(self, run_id: str, message: str) -> None:
        super().__init__(message)
        self.run_id = run_id


class ToolInvocationError(Exception):
    """A single tool call failed; only its output slot is affected."""


class UnknownToolError(ToolInvocationError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name
