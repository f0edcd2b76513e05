"""Value objects for audience-lab.

All types here are frozen dataclasses -- immutable, compared by value.
They describe what happened during a run: the tool-choice directive given to
the model, each tool invocation it triggered, and the ordered steps that make
up a run's history.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from .enums import InvocationStatus, ToolChoiceMode

# ---------------------------------------------------------------------------
# ToolChoice
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolChoice:
    """Per-step directive controlling whether the model must call tools."""

    mode: ToolChoiceMode = ToolChoiceMode.AUTO
    tool_name: str | None = None

    def __post_init__(self) -> None:
        if self.mode is ToolChoiceMode.TOOL and not self.tool_name:
            raise ValueError("ToolChoice(mode=TOOL) requires a tool_name")
        if self.mode is not ToolChoiceMode.TOOL and self.tool_name is not None:
            raise ValueError(f"tool_name is only valid with mode=TOOL, got {self.mode}")

    @classmethod
    def auto(cls) -> ToolChoice:
        return cls(ToolChoiceMode.AUTO)

    @classmethod
    def required(cls) -> ToolChoice:
        return cls(ToolChoiceMode.REQUIRED)

    @classmethod
    def none(cls) -> ToolChoice:
        return cls(ToolChoiceMode.NONE)

    @classmethod
    def tool(cls, name: str) -> ToolChoice:
        return cls(ToolChoiceMode.TOOL, name)

    @property
    def forces_tool_call(self) -> bool:
        return self.mode in (ToolChoiceMode.REQUIRED, ToolChoiceMode.TOOL)

    def to_provider(self) -> str:
        """Render as the ``tool_choice`` value understood by ``bind_tools``."""
        if self.mode is ToolChoiceMode.TOOL:
            assert self.tool_name is not None
            return self.tool_name
        return self.mode.value


# ---------------------------------------------------------------------------
# ToolInvocation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ToolInvocation:
    """A single tool call requested by the model.

    Transitions ``requested -> executing -> completed | failed`` produce new
    instances; a completed or failed invocation is never changed again.

    Attributes
    ----------
    tool_name:
        Name of the tool, unique within the registry.
    call_id:
        Identifier unique within the run (the provider's tool-call id).
    input:
        Arguments as sent by the model (validated form once executed).
    output:
        The tool's payload, or its default payload when the call failed.
    status:
        Lifecycle state.
    error:
        Human-readable failure description for failed invocations.
    """

    tool_name: str
    call_id: str
    input: dict[str, Any] = field(default_factory=dict)
    output: Any = None
    status: InvocationStatus = InvocationStatus.REQUESTED
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status is InvocationStatus.FAILED

    @property
    def completed(self) -> bool:
        return self.status is InvocationStatus.COMPLETED

    def executing(self, validated_input: dict[str, Any] | None = None) -> ToolInvocation:
        if self.status is not InvocationStatus.REQUESTED:
            raise ValueError(f"Cannot start invocation in state {self.status.value}")
        return replace(
            self,
            input=validated_input if validated_input is not None else self.input,
            status=InvocationStatus.EXECUTING,
        )

    def complete(self, output: Any) -> ToolInvocation:
        if self.status is not InvocationStatus.EXECUTING:
            raise ValueError(f"Cannot complete invocation in state {self.status.value}")
        return replace(self, output=output, status=InvocationStatus.COMPLETED)

    def fail(self, error: str, fallback_output: Any = None) -> ToolInvocation:
        if self.status in (InvocationStatus.COMPLETED, InvocationStatus.FAILED):
            raise ValueError(f"Cannot fail invocation in state {self.status.value}")
        return replace(
            self,
            output=fallback_output,
            status=InvocationStatus.FAILED,
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "call_id": self.call_id,
            "input": self.input,
            "output": self.output,
            "status": self.status.value,
            "error": self.error,
        }


# ---------------------------------------------------------------------------
# Step
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Step:
    """One model round-trip plus the tool calls it triggered."""

    index: int
    text: str = ""
    invocations: tuple[ToolInvocation, ...] = ()
    tool_choice: ToolChoice = field(default_factory=ToolChoice.auto)

    @property
    def tool_names(self) -> tuple[str, ...]:
        return tuple(inv.tool_name for inv in self.invocations)

    def results_for(self, tool_name: str) -> tuple[ToolInvocation, ...]:
        """Completed invocations of *tool_name* in this step."""
        return tuple(
            inv for inv in self.invocations
            if inv.tool_name == tool_name and inv.completed
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "text": self.text,
            "tool_choice": self.tool_choice.to_provider(),
            "invocations": [inv.to_dict() for inv in self.invocations],
        }


History = Sequence[Step]
