"""Producer/consumer channel for step events.

The step loop is the producer: it puts :class:`DomainEvent` instances on a
:class:`StepChannel` as the run progresses.  A separate consumer drains the
channel and decides how to put the events on the wire -- :func:`drain_to`
writes one NDJSON line per event.  The loop never knows about the wire
format.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from audience_lab.domain.events import DomainEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


# ===================================================================== #
#  Channel                                                               #
# ===================================================================== #

class StepChannel:
    """Bounded async queue of domain events, closed with a sentinel.

    Usage::

        channel = StepChannel()
        producer = asyncio.create_task(controller.run(...))
        async for event in channel:
            ...

    Parameters
    ----------
    maxsize:
        Queue capacity.  A full queue makes the producer wait, so a slow
        consumer applies back-pressure to the loop.
    """

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._published = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def published(self) -> int:
        """Number of events put on the channel so far."""
        return self._published

    async def publish(self, event: DomainEvent) -> None:
        if self._closed:
            raise RuntimeError("StepChannel is closed")
        await self._queue.put(event)
        self._published += 1

    async def close(self) -> None:
        """Signal end-of-stream.  Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(_CLOSED)

    async def get(self) -> DomainEvent | None:
        """Return the next event, or ``None`` once the channel is closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            # keep the sentinel for any other reader
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self) -> AsyncIterator[DomainEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[DomainEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event


# ===================================================================== #
#  Serialization                                                         #
# ===================================================================== #

def to_jsonable(obj: Any) -> Any:
    """Convert dataclasses, pydantic models, enums and tuples to JSON types."""
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", by_alias=True)
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_jsonable(to_dict())
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    return str(obj)


def serialize_event(event: DomainEvent) -> str:
    """Render *event* as a single NDJSON line (without the newline)."""
    payload = to_jsonable(event)
    payload["type"] = event.event_type
    return json.dumps(payload, sort_keys=True, ensure_ascii=False)


async def drain_to(channel: StepChannel, write: Callable[[str], Any]) -> int:
    """Consume *channel* until closed, writing one line per event.

    *write* may be a plain callable or a coroutine function.  Returns the
    number of events written.
    """
    count = 0
    async for event in channel:
        result = write(serialize_event(event) + "\n")
        if asyncio.iscoroutine(result):
            await result
        count += 1
    logger.debug("drain_to: wrote %d events", count)
    return count
