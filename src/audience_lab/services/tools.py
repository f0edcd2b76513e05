"""Tool execution registry.

A :class:`Tool` pairs a name with a pydantic input contract, an async
``execute`` callable and a default payload.  A :class:`ToolRegistry` is the
closed set of tools one run exposes to the model.  Registries are built by
pipeline factory functions that close over the run's accumulator, so two
runs never share tool state.

The registry never lets a tool failure escape: bad arguments, unknown tool
names and exceptions raised by a tool body all produce a *failed*
:class:`~audience_lab.domain.values.ToolInvocation` carrying the tool's
default payload, and the step loop carries on.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from audience_lab.domain.exceptions import ToolInputError, UnknownToolError
from audience_lab.domain.values import ToolInvocation
from audience_lab.infrastructure.channel import to_jsonable

logger = logging.getLogger(__name__)

ToolBody = Callable[[Any], Awaitable[Any]]


def _tool_name(name: str | Enum) -> str:
    return name.value if isinstance(name, Enum) else str(name)


@dataclass(frozen=True)
class Tool:
    """A named, schema-constrained capability the model may call.

    Attributes
    ----------
    name:
        Identifier the model uses.  Accepts a ``str`` enum member.
    description:
        Shown to the model alongside the input schema.
    input_model:
        Pydantic model the arguments are validated against.
    execute:
        Async callable receiving the validated ``input_model`` instance.
    default_output:
        Payload substituted when the call fails.  Deep-copied per use.
    """

    name: str
    description: str
    input_model: type[BaseModel]
    execute: ToolBody
    default_output: Any = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _tool_name(self.name))

    def fallback(self) -> Any:
        return copy.deepcopy(self.default_output)

    def spec(self) -> dict[str, Any]:
        """OpenAI-style function spec accepted by ``bind_tools``."""
        schema = self.input_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


class ToolRegistry:
    """Insertion-ordered, closed set of tools for one run."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.add(tool)

    def add(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool {tool.name!r} is already registered")
        self._tools[tool.name] = tool

    def get(self, name: str | Enum) -> Tool:
        key = _tool_name(name)
        try:
            return self._tools[key]
        except KeyError:
            raise UnknownToolError(key, self.names) from None

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._tools)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, (str, Enum)) and _tool_name(name) in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def specs(self) -> list[dict[str, Any]]:
        return [tool.spec() for tool in self._tools.values()]

    def validate(self, name: str | Enum, args: Any) -> BaseModel:
        """Validate *args* against the tool's input contract.

        Raises
        ------
        UnknownToolError
            If no tool is registered under *name*.
        ToolInputError
            If the arguments do not satisfy the contract.
        """
        tool = self.get(name)
        try:
            return tool.input_model.model_validate(args if args is not None else {})
        except ValidationError as exc:
            raise ToolInputError(
                f"Invalid arguments for {tool.name}: {exc.error_count()} error(s)",
                tool_name=tool.name,
                errors=[
                    {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                    for err in exc.errors()
                ],
            ) from exc

    async def execute(self, invocation: ToolInvocation) -> ToolInvocation:
        """Run one requested invocation to a completed or failed state."""
        try:
            tool = self.get(invocation.tool_name)
        except UnknownToolError as exc:
            logger.warning("Tool call %s: %s", invocation.call_id, exc)
            return invocation.fail(str(exc))

        try:
            args = self.validate(tool.name, invocation.input)
        except ToolInputError as exc:
            logger.warning(
                "Tool %s (%s): input rejected: %s", tool.name, invocation.call_id, exc.errors
            )
            return invocation.fail(str(exc), tool.fallback())

        running = invocation.executing(args.model_dump(mode="json", by_alias=True))
        try:
            output = await tool.execute(args)
        except Exception as exc:
            logger.exception("Tool %s (%s) failed", tool.name, invocation.call_id)
            return running.fail(f"{type(exc).__name__}: {exc}", tool.fallback())

        return running.complete(to_jsonable(output))
