"""Capability wrapper around a LangChain chat model.

:class:`ModelGateway` is the only place that touches ``BaseChatModel``.  It
turns provider exceptions into :class:`LLMError`, harvests web citations from
provider annotations, and binds tool specs with the per-step tool choice the
step loop asks for.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any, TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel, ValidationError

from audience_lab.domain.values import ToolChoice
from audience_lab.infrastructure.llm import (
    LLMError,
    LLMResponseError,
    Source,
    TextResult,
)

logger = logging.getLogger(__name__)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

WEB_SEARCH_TOOL = "web_search_preview"


def message_text(message: BaseMessage) -> str:
    """Concatenate the text parts of a message's content."""
    content = message.content
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") in ("text", "output_text"):
            parts.append(str(block.get("text", "")))
    return "".join(parts)


def extract_sources(message: BaseMessage) -> tuple[Source, ...]:
    """Collect ``url_citation`` annotations, de-duplicated by URL in order."""
    annotations: list[Any] = []
    if isinstance(message.content, list):
        for block in message.content:
            if isinstance(block, dict):
                annotations.extend(block.get("annotations") or [])
    annotations.extend(message.additional_kwargs.get("annotations") or [])

    seen: set[str] = set()
    sources: list[Source] = []
    for ann in annotations:
        if not isinstance(ann, Mapping):
            continue
        if ann.get("type") not in ("url_citation", "citation"):
            continue
        url = ann.get("url")
        if not url or url in seen:
            continue
        seen.add(url)
        sources.append(Source(url=url, title=ann.get("title") or url))
    return tuple(sources)


class ModelGateway:
    """Generate text, structured objects, and tool-calling steps.

    Parameters
    ----------
    chat_model:
        Any LangChain chat model.  Tool-calling steps require a model that
        implements ``bind_tools``.
    search_tools:
        Tool specs that give the model live web access.  Defaults to the
        OpenAI built-in ``web_search_preview`` tool.
    search_tool_name:
        Name used to pin ``tool_choice`` to the search tool.
    provider_options:
        Extra keyword arguments forwarded to ``bind_tools`` on every step
        (e.g. ``{"parallel_tool_calls": False}``).
    tool_choice_aliases:
        Provider spellings for tool-choice modes, e.g. ``{"required": "any"}``
        for Anthropic.
    """

    def __init__(
        self,
        chat_model: BaseChatModel,
        *,
        search_tools: Sequence[dict[str, Any]] | None = None,
        search_tool_name: str = WEB_SEARCH_TOOL,
        provider_options: Mapping[str, Any] | None = None,
        tool_choice_aliases: Mapping[str, str] | None = None,
    ) -> None:
        self._chat_model = chat_model
        self._search_tools = (
            list(search_tools) if search_tools is not None else [{"type": WEB_SEARCH_TOOL}]
        )
        self._search_tool_name = search_tool_name
        self._provider_options = dict(provider_options or {})
        self._aliases = dict(tool_choice_aliases or {})

    @property
    def chat_model(self) -> BaseChatModel:
        return self._chat_model

    # -- helpers --------------------------------------------------------------

    @staticmethod
    def _messages(prompt: str, system: str | None) -> list[BaseMessage]:
        messages: list[BaseMessage] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))
        return messages

    def _choice(self, choice: ToolChoice | str) -> str:
        raw = choice.to_provider() if isinstance(choice, ToolChoice) else choice
        return self._aliases.get(raw, raw)

    async def _ainvoke(self, runnable: Any, messages: list[BaseMessage]) -> Any:
        try:
            return await runnable.ainvoke(messages)
        except LLMError:
            raise
        except ValidationError as exc:
            raise LLMResponseError(f"Model output failed validation: {exc}") from exc
        except Exception as exc:
            raise LLMError(f"{type(exc).__name__}: {exc}") from exc

    # -- capabilities ---------------------------------------------------------

    async def generate_text(
        self,
        prompt: str,
        system: str | None = None,
        tools: Sequence[Any] | None = None,
        tool_choice: ToolChoice | str | None = None,
    ) -> TextResult:
        """Generate free text, optionally with tools bound."""
        runnable: Any = self._chat_model
        if tools:
            kwargs: dict[str, Any] = {}
            if tool_choice is not None:
                kwargs["tool_choice"] = self._choice(tool_choice)
            runnable = self._chat_model.bind_tools(list(tools), **kwargs)

        message = await self._ainvoke(runnable, self._messages(prompt, system))
        if not isinstance(message, BaseMessage):
            raise LLMResponseError(f"Expected a chat message, got {type(message).__name__}")

        tool_calls = tuple(getattr(message, "tool_calls", None) or ())
        return TextResult(
            text=message_text(message),
            sources=extract_sources(message),
            tool_calls=tool_calls,
        )

    async def search(self, prompt: str, system: str | None = None) -> TextResult:
        """Generate text grounded in a forced live web search."""
        result = await self.generate_text(
            prompt,
            system=system,
            tools=self._search_tools,
            tool_choice=self._search_tool_name,
        )
        logger.debug("search: %d chars, %d sources", len(result.text), len(result.sources))
        return result

    async def generate_structured(
        self,
        prompt: str,
        schema: type[SchemaT],
        system: str | None = None,
    ) -> SchemaT:
        """Generate an object conforming to *schema*.

        Raises
        ------
        LLMResponseError
            If the model output does not validate against *schema*.
        """
        runnable = self._chat_model.with_structured_output(schema)
        result = await self._ainvoke(runnable, self._messages(prompt, system))
        if isinstance(result, schema):
            return result
        try:
            if isinstance(result, BaseModel):
                return schema.model_validate(result.model_dump())
            return schema.model_validate(result)
        except ValidationError as exc:
            raise LLMResponseError(
                f"Structured output does not match {schema.__name__}: {exc}"
            ) from exc

    async def stream(
        self,
        prompt: str | Sequence[BaseMessage],
        system: str | None = None,
        web_search: bool = False,
    ) -> AsyncIterator[str]:
        """Yield text increments as the model produces them.

        *prompt* is a single user turn or a whole conversation.  With
        *web_search* the search tools are bound and the model decides when
        to use them.
        """
        if isinstance(prompt, str):
            messages = self._messages(prompt, system)
        else:
            messages = list(prompt)
            if system:
                messages.insert(0, SystemMessage(content=system))

        runnable: Any = self._chat_model
        if web_search:
            runnable = self._chat_model.bind_tools(
                self._search_tools, tool_choice=self._choice(ToolChoice.auto())
            )
        try:
            async for chunk in runnable.astream(messages):
                text = message_text(chunk)
                if text:
                    yield text
        except LLMError:
            raise
        except Exception as exc:
            raise LLMError(f"{type(exc).__name__}: {exc}") from exc

    async def invoke_step(
        self,
        messages: Sequence[BaseMessage],
        tool_specs: Sequence[dict[str, Any]],
        tool_choice: ToolChoice,
    ) -> AIMessage:
        """Run one step of a tool-calling conversation."""
        runnable: Any = self._chat_model
        if tool_specs:
            kwargs: dict[str, Any] = dict(self._provider_options)
            kwargs["tool_choice"] = self._choice(tool_choice)
            runnable = self._chat_model.bind_tools(list(tool_specs), **kwargs)

        message = await self._ainvoke(runnable, list(messages))
        if not isinstance(message, AIMessage):
            raise LLMResponseError(
                f"Expected an AIMessage from the model, got {type(message).__name__}"
            )
        return message
