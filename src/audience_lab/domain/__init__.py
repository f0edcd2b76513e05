"""Domain layer for audience-lab.

Re-exports the public domain types so that consumers can write::

    from audience_lab.domain import Step, ToolChoice, JourneyPhase
"""

# -- Enumerations -------------------------------------------------------------
from .enums import (
    ConfidenceLevel,
    EvidenceType,
    InvocationStatus,
    JourneyPhase,
    ResearchDepth,
    SocialPlatform,
    StopReason,
    ToolChoiceMode,
)

# -- Value Objects ------------------------------------------------------------
from .values import History, Step, ToolChoice, ToolInvocation

# -- Domain Events ------------------------------------------------------------
from .events import DomainEvent, RunFailed, RunFinished, RunStarted, StepCompleted

# -- Exceptions ---------------------------------------------------------------
from .exceptions import (
    AudienceLabError,
    ConfigError,
    HandleExtractionError,
    IncompleteRunError,
    PhaseOrderError,
    RunCancelledError,
    ToolInputError,
    UnknownToolError,
    UnsupportedPlatformError,
)

__all__ = [
    # Enums
    "ConfidenceLevel",
    "EvidenceType",
    "InvocationStatus",
    "JourneyPhase",
    "ResearchDepth",
    "SocialPlatform",
    "StopReason",
    "ToolChoiceMode",
    # Values
    "History",
    "Step",
    "ToolChoice",
    "ToolInvocation",
    # Events
    "DomainEvent",
    "RunFailed",
    "RunFinished",
    "RunStarted",
    "StepCompleted",
    # Exceptions
    "AudienceLabError",
    "ConfigError",
    "HandleExtractionError",
    "IncompleteRunError",
    "PhaseOrderError",
    "RunCancelledError",
    "ToolInputError",
    "UnknownToolError",
    "UnsupportedPlatformError",
]
