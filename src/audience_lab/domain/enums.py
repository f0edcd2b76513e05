"""Domain enumerations for audience-lab.

These enums capture the fixed vocabularies used across the domain layer:
journey phases, tool-choice modes, tool-invocation lifecycle states, run stop
reasons, and the evidence/confidence labels carried by audience segments.
"""

from enum import Enum


class JourneyPhase(str, Enum):
    """One stage of the three-stage research journey."""

    DISCOVERY = "discovery"
    CONSIDERATION = "consideration"
    ACTIVATION = "activation"

    @property
    def next(self) -> "JourneyPhase | None":
        """The phase that follows this one, or ``None`` after activation."""
        order = list(JourneyPhase)
        idx = order.index(self)
        return order[idx + 1] if idx + 1 < len(order) else None


class ToolChoiceMode(Enum):
    """How strongly the model is pushed towards calling tools on a step."""

    AUTO = "auto"  # model may answer in free text
    REQUIRED = "required"  # model must call some tool
    NONE = "none"  # model must not call tools
    TOOL = "tool"  # model must call one named tool


class InvocationStatus(Enum):
    """Lifecycle of a single tool invocation."""

    REQUESTED = "requested"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class StopReason(Enum):
    """Reason the step loop terminated."""

    CONDITION_MET = "condition_met"
    MAX_STEPS = "max_steps"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    NO_TOOL_CALLS = "no_tool_calls"
    ERROR = "error"


class EvidenceType(str, Enum):
    """Where a piece of segment evidence came from."""

    HASHTAG = "hashtag"
    CONTENT = "content"
    COLLABORATION = "collaboration"
    COMMENT = "comment"
    BIO = "bio"
    COMPARABLE_CREATOR = "comparable_creator"
    ARTICLE = "article"


class ConfidenceLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SocialPlatform(str, Enum):
    """Supported social platforms for profile research."""

    INSTAGRAM = "instagram"
    TIKTOK = "tiktok"
    TWITTER = "twitter"
    YOUTUBE = "youtube"
    LINKEDIN = "linkedin"


class ResearchDepth(str, Enum):
    """How much research the evidence-based ICP pipeline performs."""

    QUICK = "quick"  # no comparative analysis
    STANDARD = "standard"
    DEEP = "deep"
