"""Bounded tool-calling step loop.

Each iteration of :meth:`StepLoopController.run`:

1. checks cancellation and the wall-clock ceiling;
2. asks the tool-choice policy what this step may do;
3. invokes the model with the conversation so far;
4. executes the requested tool calls one at a time, in the order the model
   listed them, feeding each result back as a ``ToolMessage``;
5. appends an immutable :class:`Step` to the history and publishes it;
6. evaluates the stop conditions (logical OR, step ceiling always included).

Tool failures never leave the loop; they are recorded on the invocation and
the tool's default payload stands in for the result.  A model/provider
failure is fatal: a :class:`RunFailed` event is published and the error
re-raised to the caller.

Classes
-------
RunResult
    Outcome of a run: history, stop reason, terminal tool output.
StepLoopController
    The loop itself.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Any

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage, ToolMessage

from audience_lab.domain.enums import StopReason
from audience_lab.domain.events import RunFailed, RunFinished, RunStarted, StepCompleted
from audience_lab.domain.exceptions import IncompleteRunError, RunCancelledError
from audience_lab.domain.values import Step, ToolChoice, ToolInvocation
from audience_lab.infrastructure.channel import StepChannel, to_jsonable
from audience_lab.infrastructure.config import StepLoopConfig
from audience_lab.infrastructure.llm import LLMError, ModelGateway
from audience_lab.infrastructure.llm.gateway import message_text
from audience_lab.services.policies import (
    StopCondition,
    ToolChoicePolicy,
    always,
    last_output,
    step_count_is,
    tool_called,
)
from audience_lab.services.tools import ToolRegistry

logger = logging.getLogger(__name__)


# ===================================================================== #
#  Run Result                                                            #
# ===================================================================== #

@dataclass
class RunResult:
    """Outcome of one step-loop run.

    Attributes
    ----------
    history:
        Every recorded step, in order.
    stop_reason:
        Why the loop halted.
    terminal_tool:
        Name of the tool whose output is the run's result, if any.
    terminal_output:
        Output of the ``terminal_tool`` call that met the terminal condition.
    completed:
        Whether the terminal condition was met.  Always true for runs with
        no terminal condition.
    elapsed_seconds:
        Wall-clock duration of the run.
    run_id:
        Identifier stamped on every event the run published.
    """

    history: tuple[Step, ...] = ()
    stop_reason: StopReason = StopReason.MAX_STEPS
    terminal_tool: str | None = None
    terminal_output: Any = None
    completed: bool = True
    elapsed_seconds: float = 0.0
    run_id: str = ""

    @property
    def steps_completed(self) -> int:
        return len(self.history)

    def require_output(self) -> Any:
        """Return the terminal output, refusing to pass off a partial run.

        Raises
        ------
        IncompleteRunError
            If the run stopped before its terminal condition was met
            (:class:`RunCancelledError` when it was cancelled).
        """
        if not self.completed:
            error_cls = (
                RunCancelledError
                if self.stop_reason is StopReason.CANCELLED
                else IncompleteRunError
            )
            raise error_cls(
                f"Run stopped ({self.stop_reason.value}) after {self.steps_completed} "
                f"step(s) without completing {self.terminal_tool}",
                terminal_tool=self.terminal_tool or "",
                stop_reason=self.stop_reason.value,
                steps_completed=self.steps_completed,
            )
        return self.terminal_output

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stop_reason": self.stop_reason.value,
            "completed": self.completed,
            "steps_completed": self.steps_completed,
            "elapsed_seconds": self.elapsed_seconds,
            "terminal_tool": self.terminal_tool,
            "terminal_output": to_jsonable(self.terminal_output),
            "history": [step.to_dict() for step in self.history],
        }


def _terminal_outcome(
    history: tuple[Step, ...],
    condition: StopCondition,
    tool_name: str | None,
) -> tuple[bool, Any]:
    """Find the tool call that first satisfied *condition*.

    Returns ``(met, output)`` where *output* is that call's output when it
    was a completed call of *tool_name*.
    """
    for position, step in enumerate(history):
        prefix = history[:position]
        for count in range(len(step.invocations) + 1):
            partial = (*prefix, replace(step, invocations=step.invocations[:count]))
            if not condition(partial):
                continue
            if tool_name is None:
                return True, None
            if count and step.invocations[count - 1].tool_name == tool_name:
                return True, step.invocations[count - 1].output
            return True, last_output(partial, tool_name)
    return False, None


# ===================================================================== #
#  Step Loop Controller                                                  #
# ===================================================================== #

class StepLoopController:
    """Drive a model through a bounded sequence of tool-calling steps.

    Parameters
    ----------
    gateway:
        Model boundary used for every step.
    registry:
        Tools the model may call.  Built fresh per run.
    stop_conditions:
        Predicates over the history; any one returning ``True`` halts the
        loop.  ``step_count_is(config.max_steps)`` is always added.
    tool_choice_policy:
        Maps the history to this step's :class:`ToolChoice`.  Defaults to
        ``auto`` on every step.
    config:
        Step ceiling and wall-clock ceiling.
    terminal_tool:
        Tool whose output is the run's result.
    terminal_condition:
        Predicate that marks the run as completed.  Defaults to
        ``tool_called(terminal_tool)``; the result is the output of the
        terminal tool call that first satisfied it.
    channel:
        Optional :class:`StepChannel` receiving run events.  The controller
        closes it when the run ends, however it ends.
    pipeline:
        Label attached to the ``RunStarted`` event.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        gateway: ModelGateway,
        registry: ToolRegistry,
        stop_conditions: Sequence[StopCondition] = (),
        tool_choice_policy: ToolChoicePolicy | None = None,
        config: StepLoopConfig | None = None,
        terminal_tool: str | None = None,
        terminal_condition: StopCondition | None = None,
        channel: StepChannel | None = None,
        pipeline: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._config = config or StepLoopConfig()
        self._config.validate()
        self._stop_conditions = tuple(stop_conditions)
        self._ceiling = step_count_is(self._config.max_steps)
        self._policy = tool_choice_policy or always(ToolChoice.auto())
        self._terminal_tool = terminal_tool
        if terminal_condition is None and terminal_tool is not None:
            terminal_condition = tool_called(terminal_tool)
        self._terminal_condition = terminal_condition
        self._channel = channel
        self._pipeline = pipeline
        self._clock = clock

    @property
    def config(self) -> StepLoopConfig:
        return self._config

    # -- events -------------------------------------------------------------

    async def _publish(self, event: Any) -> None:
        if self._channel is not None:
            await self._channel.publish(event)

    # -- helpers ------------------------------------------------------------

    def _stop_reason(self, history: tuple[Step, ...]) -> StopReason | None:
        if any(cond(history) for cond in self._stop_conditions):
            return StopReason.CONDITION_MET
        if self._ceiling(history):
            return StopReason.MAX_STEPS
        return None

    async def _run_tools(
        self, index: int, tool_calls: Sequence[dict[str, Any]]
    ) -> tuple[list[ToolInvocation], list[BaseMessage]]:
        invocations: list[ToolInvocation] = []
        replies: list[BaseMessage] = []
        # serial on purpose: tools share the run's accumulator
        for position, call in enumerate(tool_calls):
            requested = ToolInvocation(
                tool_name=str(call.get("name") or ""),
                call_id=str(call.get("id") or f"call_{index}_{position}"),
                input=dict(call.get("args") or {}),
            )
            logger.info(
                "Step %d: calling %s (%s)", index, requested.tool_name, requested.call_id
            )
            done = await self._registry.execute(requested)
            if done.failed:
                logger.warning(
                    "Step %d: %s failed: %s", index, done.tool_name, done.error
                )
            invocations.append(done)
            content: Any = done.output if not done.failed else {
                "error": done.error,
                "fallback": done.output,
            }
            replies.append(
                ToolMessage(
                    content=json.dumps(to_jsonable(content), ensure_ascii=False),
                    tool_call_id=requested.call_id,
                    name=requested.tool_name,
                    status="error" if done.failed else "success",
                )
            )
        return invocations, replies

    # -- main loop ----------------------------------------------------------

    async def run(
        self,
        system_prompt: str,
        initial_prompt: str,
        cancel_event: asyncio.Event | None = None,
    ) -> RunResult:
        """Run the loop until a stop condition, the ceiling, or cancellation.

        Raises
        ------
        LLMError
            If the model invocation fails.  Tool failures never raise.
        """
        run_id = uuid.uuid4().hex[:12]
        started = self._clock()
        messages: list[BaseMessage] = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=initial_prompt),
        ]
        history: tuple[Step, ...] = ()
        stop_reason: StopReason | None = None
        wall_clock = self._config.wall_clock_seconds

        await self._publish(
            RunStarted(
                source_id=run_id,
                pipeline=self._pipeline,
                tools=self._registry.names,
                max_steps=self._config.max_steps,
            )
        )

        try:
            while stop_reason is None:
                index = len(history)
                if cancel_event is not None and cancel_event.is_set():
                    logger.info("Run %s: cancelled before step %d", run_id, index)
                    stop_reason = StopReason.CANCELLED
                    break
                if wall_clock > 0 and self._clock() - started >= wall_clock:
                    logger.info("Run %s: wall clock exhausted before step %d", run_id, index)
                    stop_reason = StopReason.TIMEOUT
                    break

                choice = self._policy(history)
                logger.debug("Run %s: step %d tool_choice=%s", run_id, index, choice.to_provider())
                message = await self._gateway.invoke_step(
                    messages, self._registry.specs(), choice
                )
                messages.append(message)

                invocations, replies = await self._run_tools(index, message.tool_calls)
                messages.extend(replies)

                step = Step(
                    index=index,
                    text=message_text(message),
                    invocations=tuple(invocations),
                    tool_choice=choice,
                )
                history = (*history, step)
                await self._publish(StepCompleted(source_id=run_id, step=step))

                stop_reason = self._stop_reason(history)
                if stop_reason is None and not invocations and not choice.forces_tool_call:
                    stop_reason = StopReason.NO_TOOL_CALLS

            if self._terminal_condition is None:
                completed, terminal_output = True, None
            else:
                completed, terminal_output = _terminal_outcome(
                    history, self._terminal_condition, self._terminal_tool
                )
            result = RunResult(
                history=history,
                stop_reason=stop_reason,
                terminal_tool=self._terminal_tool,
                terminal_output=terminal_output,
                completed=completed,
                elapsed_seconds=self._clock() - started,
                run_id=run_id,
            )
            logger.info(
                "Run %s: stopped (%s) after %d step(s), completed=%s",
                run_id,
                stop_reason.value,
                result.steps_completed,
                result.completed,
            )
            await self._publish(
                RunFinished(
                    source_id=run_id,
                    stop_reason=stop_reason,
                    steps_completed=result.steps_completed,
                    completed=result.completed,
                    result=result.terminal_output,
                )
            )
            return result
        except LLMError as exc:
            logger.error("Run %s: model invocation failed at step %d: %s", run_id, len(history), exc)
            await self._publish(
                RunFailed(
                    source_id=run_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                    steps_completed=len(history),
                )
            )
            raise
        finally:
            if self._channel is not None:
                await self._channel.close()
