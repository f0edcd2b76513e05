"""Streaming chat with optional live web search.

A conversation is a list of turns, either plain ``{"role", "content"}``
pairs or UI-style turns whose text lives in ``parts``.  With web search on,
the provider's search tool is bound and a system prompt tells the model to
use it for anything time-sensitive; the model decides when to search.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import Field

from audience_lab.infrastructure.llm import ModelGateway
from audience_lab.schemas.common import WireModel

from . import prompts

logger = logging.getLogger(__name__)


class ChatPart(WireModel):
    type: str
    text: str = ""


class ChatTurn(WireModel):
    role: Literal["system", "user", "assistant"]
    content: str = ""
    parts: list[ChatPart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        if self.content:
            return self.content
        return "".join(p.text for p in self.parts if p.type == "text")

    def to_message(self) -> BaseMessage:
        if self.role == "system":
            return SystemMessage(content=self.text)
        if self.role == "assistant":
            return AIMessage(content=self.text)
        return HumanMessage(content=self.text)


@dataclass(frozen=True)
class ChatRequest:
    messages: tuple[ChatTurn, ...]
    web_search: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChatRequest:
        """Parse a ``{"messages": [...], "webSearch": bool}`` body.

        Raises
        ------
        ValueError
            If ``messages`` is missing or not a list.
        """
        messages = data.get("messages")
        if not isinstance(messages, list):
            raise ValueError("Messages array is required")
        return cls(
            messages=tuple(ChatTurn.model_validate(m) for m in messages),
            web_search=bool(data.get("webSearch", False)),
        )

    @classmethod
    def single(cls, text: str, web_search: bool = False) -> ChatRequest:
        return cls(messages=(ChatTurn(role="user", content=text),), web_search=web_search)


async def stream_chat(gateway: ModelGateway, request: ChatRequest) -> AsyncIterator[str]:
    """Yield the assistant's reply to *request* as text increments.

    An empty conversation yields nothing and never reaches the model.
    """
    logger.info(
        "Chat: %d message(s), web search %s",
        len(request.messages),
        "on" if request.web_search else "off",
    )
    if not request.messages:
        return
    history: Sequence[BaseMessage] = [turn.to_message() for turn in request.messages]
    async for chunk in gateway.stream(
        history,
        system=prompts.CHAT_SEARCH_SYSTEM if request.web_search else None,
        web_search=request.web_search,
    ):
        yield chunk


async def collect_chat(gateway: ModelGateway, request: ChatRequest) -> str:
    """Stream *request* to completion and return the whole reply."""
    return "".join([chunk async for chunk in stream_chat(gateway, request)])
