"""Tests for the step event channel and NDJSON serialization."""

from __future__ import annotations

import asyncio
import json

import pytest

from audience_lab.domain.enums import StopReason
from audience_lab.domain.events import RunFinished, RunStarted
from audience_lab.infrastructure.channel import (
    StepChannel,
    drain_to,
    serialize_event,
    to_jsonable,
)


class TestStepChannel:

    @pytest.mark.asyncio
    async def test_publish_then_iterate(self) -> None:
        channel = StepChannel()
        await channel.publish(RunStarted(source_id="r1", pipeline="simulate"))
        await channel.publish(RunFinished(source_id="r1", stop_reason=StopReason.CONDITION_MET))
        await channel.close()

        events = [event async for event in channel]
        assert [e.event_type for e in events] == ["RunStarted", "RunFinished"]
        assert channel.published == 2

    @pytest.mark.asyncio
    async def test_publish_after_close_raises(self) -> None:
        channel = StepChannel()
        await channel.close()
        with pytest.raises(RuntimeError):
            await channel.publish(RunStarted())

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        channel = StepChannel()
        await channel.close()
        await channel.close()
        assert channel.closed
        assert await channel.get() is None
        assert await channel.get() is None

    @pytest.mark.asyncio
    async def test_back_pressure(self) -> None:
        channel = StepChannel(maxsize=1)
        await channel.publish(RunStarted())
        blocked = asyncio.create_task(channel.publish(RunStarted()))
        await asyncio.sleep(0)
        assert not blocked.done()
        await channel.get()
        await asyncio.wait_for(blocked, timeout=1)
        assert channel.published == 2


class TestSerialization:

    def test_serialize_event(self) -> None:
        line = serialize_event(
            RunStarted(source_id="r1", pipeline="brand", tools=("a", "b"), max_steps=3)
        )
        payload = json.loads(line)
        assert payload["type"] == "RunStarted"
        assert payload["tools"] == ["a", "b"]
        assert payload["source_id"] == "r1"
        assert "\n" not in line

    def test_enum_values(self) -> None:
        payload = to_jsonable(RunFinished(stop_reason=StopReason.TIMEOUT))
        assert payload["stop_reason"] == "timeout"

    def test_unknown_objects_become_strings(self) -> None:
        assert to_jsonable({"x": object}) == {"x": str(object)}


class TestDrainTo:

    @pytest.mark.asyncio
    async def test_sync_writer(self) -> None:
        channel = StepChannel()
        lines: list[str] = []
        await channel.publish(RunStarted())
        await channel.close()
        count = await drain_to(channel, lines.append)
        assert count == 1
        assert lines[0].endswith("\n")
        assert json.loads(lines[0])["type"] == "RunStarted"

    @pytest.mark.asyncio
    async def test_async_writer_with_concurrent_producer(self) -> None:
        channel = StepChannel(maxsize=2)
        lines: list[str] = []

        async def write(line: str) -> None:
            lines.append(line)

        async def produce() -> None:
            for _ in range(5):
                await channel.publish(RunStarted())
            await channel.close()

        _, count = await asyncio.gather(produce(), drain_to(channel, write))
        assert count == 5
        assert len(lines) == 5
