"""Stop conditions and tool-choice policies.

Both are pure functions of the run history:

* a **stop condition** is ``(history) -> bool``; the step loop halts as soon
  as any condition in its set returns ``True``;
* a **tool-choice policy** is ``(history) -> ToolChoice`` and is recomputed
  before every step, which is how a pipeline forces tool use until some
  milestone tool has fired and relaxes afterwards.

Neither kind of function may mutate the history or read anything but it.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from audience_lab.domain.enums import JourneyPhase
from audience_lab.domain.values import History, ToolChoice

StopCondition = Callable[[History], bool]
ToolChoicePolicy = Callable[[History], ToolChoice]

RECORD_PHASE_TOOL = "recordPhaseCompletion"


# ===================================================================== #
#  History queries                                                       #
# ===================================================================== #

def completed_outputs(history: History, tool_name: str) -> list[Any]:
    """Outputs of every completed invocation of *tool_name*, oldest first."""
    return [inv.output for step in history for inv in step.results_for(tool_name)]


def last_output(history: History, tool_name: str) -> Any | None:
    """Output of the most recent completed invocation of *tool_name*."""
    for step in reversed(history):
        results = step.results_for(tool_name)
        if results:
            return results[-1].output
    return None


# ===================================================================== #
#  Stop conditions                                                       #
# ===================================================================== #

def step_count_is(n: int) -> StopCondition:
    """True once *n* steps have been recorded."""
    if n < 1:
        raise ValueError(f"step ceiling must be >= 1, got {n}")

    def condition(history: History) -> bool:
        return len(history) >= n

    condition.__name__ = f"step_count_is({n})"
    return condition


def tool_called(tool_name: str) -> StopCondition:
    """True once *tool_name* has produced a result."""

    def condition(history: History) -> bool:
        return any(step.results_for(tool_name) for step in history)

    condition.__name__ = f"tool_called({tool_name})"
    return condition


def tool_output_matches(tool_name: str, predicate: Callable[[Any], bool]) -> StopCondition:
    """True once some result of *tool_name* satisfies *predicate*."""

    def condition(history: History) -> bool:
        return any(predicate(out) for out in completed_outputs(history, tool_name))

    condition.__name__ = f"tool_output_matches({tool_name})"
    return condition


def phase_recorded(
    phase: JourneyPhase | str,
    tool_name: str = RECORD_PHASE_TOOL,
) -> StopCondition:
    """True once an accepted completion of *phase* has been recorded."""
    target = JourneyPhase(phase).value

    def matches(output: Any) -> bool:
        return (
            isinstance(output, dict)
            and output.get("phase") == target
            and output.get("accepted", True) is not False
        )

    return tool_output_matches(tool_name, matches)


def any_of(*conditions: StopCondition) -> StopCondition:
    """Logical OR of *conditions*."""

    def condition(history: History) -> bool:
        return any(cond(history) for cond in conditions)

    return condition


# ===================================================================== #
#  Tool-choice policies                                                  #
# ===================================================================== #

def always(choice: ToolChoice) -> ToolChoicePolicy:
    def policy(history: History) -> ToolChoice:
        return choice

    return policy


def required_until_condition(condition: StopCondition) -> ToolChoicePolicy:
    """Require a tool call on every step until *condition* holds, then auto."""

    def policy(history: History) -> ToolChoice:
        return ToolChoice.auto() if condition(history) else ToolChoice.required()

    return policy


def required_until(tool_name: str) -> ToolChoicePolicy:
    """Require a tool call on every step until *tool_name* has fired."""
    return required_until_condition(tool_called(tool_name))
