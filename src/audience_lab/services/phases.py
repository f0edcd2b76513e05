"""Journey phase state machine.

Phases run ``discovery -> consideration -> activation -> complete``.  The
only transition trigger is a recorded phase completion.

In **strict** mode a completion that skips ahead is rejected: the record
comes back with ``accepted=False`` and the tracker is unchanged.  In
**lenient** mode any phase may be recorded in any order, which is how
prompt-policed journeys behaved before the guard existed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from audience_lab.domain.enums import JourneyPhase
from audience_lab.domain.exceptions import PhaseOrderError

logger = logging.getLogger(__name__)

COMPLETE = "complete"


@dataclass(frozen=True)
class PhaseRecord:
    """Outcome of one ``record`` call, shaped for the model to read."""

    phase: JourneyPhase
    completed: bool
    next_phase: str
    all_phases_complete: bool
    accepted: bool = True
    message: str = ""
    insights_gathered: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "completed": self.completed,
            "insightsGathered": list(self.insights_gathered),
            "nextPhase": self.next_phase,
            "allPhasesComplete": self.all_phases_complete,
            "accepted": self.accepted,
            "message": self.message,
        }


class PhaseTracker:
    """Tracks completed journey phases for one run."""

    def __init__(self, strict: bool = True) -> None:
        self._strict = strict
        self._completed: list[JourneyPhase] = []

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def completed(self) -> frozenset[JourneyPhase]:
        return frozenset(self._completed)

    @property
    def current(self) -> JourneyPhase | None:
        """First phase not yet completed, or ``None`` once all are."""
        for phase in JourneyPhase:
            if phase not in self._completed:
                return phase
        return None

    @property
    def all_complete(self) -> bool:
        return len(set(self._completed)) == len(JourneyPhase)

    def check(self, phase: JourneyPhase) -> None:
        """Raise if completing *phase* now would skip an earlier phase.

        Raises
        ------
        PhaseOrderError
            In strict mode, when *phase* is ahead of the current phase.
        """
        if not self._strict or phase in self._completed:
            return
        expected = self.current
        if expected is not None and phase is not expected:
            raise PhaseOrderError(
                f"Cannot complete {phase.value} before {expected.value}",
                phase=phase.value,
                expected=expected.value,
            )

    def record(self, phase: JourneyPhase | str, insights: list[str] | tuple[str, ...] = ()) -> PhaseRecord:
        """Record completion of *phase*.  Re-recording a phase is a no-op."""
        phase = JourneyPhase(phase)
        next_phase = phase.next.value if phase.next is not None else COMPLETE

        try:
            self.check(phase)
        except PhaseOrderError as exc:
            logger.warning("PhaseTracker: rejected %s (expected %s)", phase.value, exc.expected)
            return PhaseRecord(
                phase=phase,
                completed=False,
                next_phase=exc.expected or COMPLETE,
                all_phases_complete=self.all_complete,
                accepted=False,
                message=f"{exc} Complete {exc.expected} first.",
                insights_gathered=tuple(insights),
            )

        if phase not in self._completed:
            self._completed.append(phase)
            logger.info("PhaseTracker: %s complete", phase.value)

        return PhaseRecord(
            phase=phase,
            completed=True,
            next_phase=next_phase,
            all_phases_complete=self.all_complete,
            message=f"{phase.value.capitalize()} phase recorded.",
            insights_gathered=tuple(insights),
        )
