"""Domain events for audience-lab.

Every event is a frozen dataclass inheriting from ``DomainEvent``.  The step
loop emits them onto a :class:`~audience_lab.infrastructure.channel.StepChannel`
as the run progresses; consumers decide how (and whether) to put them on the
wire.

All events carry a ``timestamp`` and a ``source_id`` identifying the run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from .enums import StopReason
from .values import Step

# ---------------------------------------------------------------------------
# Base event
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    timestamp: float = field(default_factory=time.time)
    source_id: str = ""

    @property
    def event_type(self) -> str:
        return type(self).__name__


# ---------------------------------------------------------------------------
# Run lifecycle events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RunStarted(DomainEvent):
    """A step-loop run began."""

    pipeline: str = ""
    tools: tuple[str, ...] = ()
    max_steps: int = 0


@dataclass(frozen=True)
class StepCompleted(DomainEvent):
    """A step finished and was appended to the history."""

    step: Step | None = None


@dataclass(frozen=True)
class RunFinished(DomainEvent):
    """The loop stopped normally (any stop reason other than an error)."""

    stop_reason: StopReason = StopReason.MAX_STEPS
    steps_completed: int = 0
    completed: bool = False
    result: Any = None


@dataclass(frozen=True)
class RunFailed(DomainEvent):
    """A provider error aborted the run."""

    error: str = ""
    error_type: str = ""
    steps_completed: int = 0
