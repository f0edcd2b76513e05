"""Tests for the tool registry."""

from __future__ import annotations

from enum import Enum
from typing import Any

import pytest
from pydantic import Field

from audience_lab.domain.enums import InvocationStatus
from audience_lab.domain.exceptions import ToolInputError, UnknownToolError
from audience_lab.domain.values import ToolInvocation
from audience_lab.schemas.common import WireModel
from audience_lab.services.tools import Tool, ToolRegistry


class EchoInput(WireModel):
    text: str = Field(min_length=1)
    repeat_count: int = 1


class DemoTool(str, Enum):
    ECHO = "echo"
    EXPLODE = "explode"


async def _echo(args: EchoInput) -> dict[str, Any]:
    return {"echo": args.text * args.repeat_count}


async def _explode(args: EchoInput) -> dict[str, Any]:
    raise RuntimeError("kaboom")


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry(
        [
            Tool(DemoTool.ECHO, "Echo text", EchoInput, _echo, {"echo": ""}),
            Tool(DemoTool.EXPLODE, "Always fails", EchoInput, _explode, {"items": []}),
        ]
    )


class TestRegistry:

    def test_names_in_insertion_order(self, registry: ToolRegistry) -> None:
        assert registry.names == ("echo", "explode")
        assert DemoTool.ECHO in registry
        assert len(registry) == 2

    def test_duplicate_rejected(self, registry: ToolRegistry) -> None:
        with pytest.raises(ValueError):
            registry.add(Tool("echo", "again", EchoInput, _echo))

    def test_unknown_get(self, registry: ToolRegistry) -> None:
        with pytest.raises(UnknownToolError):
            registry.get("nope")

    def test_spec_uses_camel_case(self, registry: ToolRegistry) -> None:
        spec = registry.specs()[0]
        assert spec["type"] == "function"
        assert spec["function"]["name"] == "echo"
        props = spec["function"]["parameters"]["properties"]
        assert set(props) == {"text", "repeatCount"}

    def test_validate_reports_errors(self, registry: ToolRegistry) -> None:
        with pytest.raises(ToolInputError) as exc_info:
            registry.validate("echo", {"text": ""})
        assert exc_info.value.tool_name == "echo"
        assert exc_info.value.errors[0]["loc"] == ["text"]


class TestExecute:

    @pytest.mark.asyncio
    async def test_success(self, registry: ToolRegistry) -> None:
        inv = ToolInvocation(tool_name="echo", call_id="1", input={"text": "ab", "repeatCount": 2})
        done = await registry.execute(inv)
        assert done.status is InvocationStatus.COMPLETED
        assert done.output == {"echo": "abab"}
        assert done.input == {"text": "ab", "repeatCount": 2}

    @pytest.mark.asyncio
    async def test_input_error_uses_default(self, registry: ToolRegistry) -> None:
        done = await registry.execute(ToolInvocation(tool_name="echo", call_id="1", input={}))
        assert done.failed
        assert done.output == {"echo": ""}
        assert "Invalid arguments for echo" in (done.error or "")

    @pytest.mark.asyncio
    async def test_body_error_uses_default(self, registry: ToolRegistry) -> None:
        done = await registry.execute(
            ToolInvocation(tool_name="explode", call_id="1", input={"text": "x"})
        )
        assert done.failed
        assert done.output == {"items": []}
        assert done.error == "RuntimeError: kaboom"

    @pytest.mark.asyncio
    async def test_default_is_copied(self, registry: ToolRegistry) -> None:
        first = await registry.execute(
            ToolInvocation(tool_name="explode", call_id="1", input={"text": "x"})
        )
        first.output["items"].append("mutated")
        second = await registry.execute(
            ToolInvocation(tool_name="explode", call_id="2", input={"text": "x"})
        )
        assert second.output == {"items": []}

    @pytest.mark.asyncio
    async def test_unknown_tool_recorded(self, registry: ToolRegistry) -> None:
        done = await registry.execute(ToolInvocation(tool_name="nope", call_id="1"))
        assert done.failed
        assert done.output is None
