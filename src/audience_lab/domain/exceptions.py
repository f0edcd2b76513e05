"""Domain exceptions for audience-lab.

All domain-specific exceptions inherit from ``AudienceLabError`` so callers
can catch the full family with a single ``except`` clause when needed.
Language-model failures live in :mod:`audience_lab.infrastructure.llm`.
"""

from __future__ import annotations

from typing import Any


class AudienceLabError(Exception):
    """Base exception for all audience-lab domain errors."""

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details: dict[str, Any] = details or {}


class ToolInputError(AudienceLabError):
    """Raised when tool-call arguments fail the tool's declared input contract.

    The step loop never lets this escape: the invocation is recorded as
    failed and the tool's default payload is substituted.
    """

    def __init__(
        self,
        message: str = "Tool input failed validation",
        tool_name: str = "",
        errors: list[dict[str, Any]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.tool_name = tool_name
        self.errors: list[dict[str, Any]] = errors or []


class UnknownToolError(AudienceLabError):
    """Raised when the model requests a tool that is not in the registry."""

    def __init__(
        self,
        tool_name: str = "",
        available: tuple[str, ...] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Unknown tool {tool_name!r}; available: {', '.join(available)}",
            details,
        )
        self.tool_name = tool_name
        self.available = available


class PhaseOrderError(AudienceLabError):
    """Raised when a journey phase is completed out of order."""

    def __init__(
        self,
        message: str = "Journey phase recorded out of order",
        phase: str = "",
        expected: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.phase = phase
        self.expected = expected


class IncompleteRunError(AudienceLabError):
    """Raised when a run ended without its terminal tool ever firing.

    Distinguishes "ceiling reached, nothing validated" from a genuine
    (possibly empty) result.
    """

    def __init__(
        self,
        message: str = "Run ended before the terminal tool fired",
        terminal_tool: str = "",
        stop_reason: str = "",
        steps_completed: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.terminal_tool = terminal_tool
        self.stop_reason = stop_reason
        self.steps_completed = steps_completed


class RunCancelledError(IncompleteRunError):
    """Raised when a cancelled run is asked for its result."""


class UnsupportedPlatformError(AudienceLabError):
    """Raised when a profile URL does not belong to a supported platform."""


class HandleExtractionError(AudienceLabError):
    """Raised when no handle can be extracted from a profile URL."""


class ConfigError(AudienceLabError):
    """Raised when configuration cannot be loaded."""
