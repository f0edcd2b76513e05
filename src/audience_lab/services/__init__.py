"""Service layer: the step loop and the pieces it is assembled from.

Re-exports::

    from audience_lab.services import (
        StepLoopController, ToolRegistry, Tool, tool_called, required_until,
    )
"""

from audience_lab.services.evidence import (
    DEFAULT_LOCATION_MARKERS,
    DEFAULT_MIN_SCORE,
    EvidenceValidator,
    SegmentConstraints,
    ValidationResult,
)
from audience_lab.services.loop import RunResult, StepLoopController
from audience_lab.services.phases import PhaseRecord, PhaseTracker
from audience_lab.services.policies import (
    StopCondition,
    ToolChoicePolicy,
    always,
    any_of,
    completed_outputs,
    last_output,
    phase_recorded,
    required_until,
    required_until_condition,
    step_count_is,
    tool_called,
    tool_output_matches,
)
from audience_lab.services.tools import Tool, ToolRegistry

__all__ = [
    # Evidence
    "DEFAULT_LOCATION_MARKERS",
    "DEFAULT_MIN_SCORE",
    "EvidenceValidator",
    "SegmentConstraints",
    "ValidationResult",
    # Loop
    "RunResult",
    "StepLoopController",
    # Phases
    "PhaseRecord",
    "PhaseTracker",
    # Policies
    "StopCondition",
    "ToolChoicePolicy",
    "always",
    "any_of",
    "completed_outputs",
    "last_output",
    "phase_recorded",
    "required_until",
    "required_until_condition",
    "step_count_is",
    "tool_called",
    "tool_output_matches",
    # Tools
    "Tool",
    "ToolRegistry",
]
