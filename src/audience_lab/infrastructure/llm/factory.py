"""Chat-model factory for audience-lab.

Registry-based factory: provider names map to constructor functions that
import their LangChain integration lazily, so a missing optional provider
package only fails when that provider is actually requested.

Usage::

    factory = LLMProviderFactory()
    model = factory.create("openai", model="gpt-4o")
    gateway = build_gateway(ModelConfig(provider="anthropic", model="claude-sonnet-4-5"))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from langchain_core.language_models import BaseChatModel

from audience_lab.infrastructure.config import ModelConfig, StepLoopConfig
from audience_lab.infrastructure.llm.gateway import WEB_SEARCH_TOOL, ModelGateway

logger = logging.getLogger(__name__)

ModelConstructor = Callable[..., BaseChatModel]

# Provider spellings for tool-choice modes.
_TOOL_CHOICE_ALIASES: dict[str, dict[str, str]] = {
    "openai": {},
    "anthropic": {"required": "any"},
}


class LLMProviderFactory:
    """Registry-based factory for LangChain chat models.

    Parameters
    ----------
    auto_discover:
        If ``True`` (default), pre-register the built-in providers.
    """

    def __init__(self, auto_discover: bool = True) -> None:
        self._registry: dict[str, ModelConstructor] = {}
        if auto_discover:
            self._registry["openai"] = self._create_openai
            self._registry["anthropic"] = self._create_anthropic

    def register(self, name: str, constructor: ModelConstructor, overwrite: bool = False) -> None:
        """Register a model constructor under *name*."""
        if name in self._registry and not overwrite:
            raise ValueError(
                f"Provider {name!r} is already registered. Use overwrite=True to replace it."
            )
        self._registry[name] = constructor
        logger.debug("LLMProviderFactory: registered provider %r", name)

    def create(self, provider_name: str, **kwargs: Any) -> BaseChatModel:
        """Create a chat model by provider name.

        Raises
        ------
        ValueError
            If the provider name is not registered.
        """
        constructor = self._registry.get(provider_name)
        if constructor is None:
            available = ", ".join(sorted(self._registry))
            raise ValueError(
                f"Unknown provider {provider_name!r}. Available providers: {available}"
            )
        logger.info(
            "LLMProviderFactory: creating %r model with kwargs %s",
            provider_name,
            sorted(kwargs),
        )
        return constructor(**kwargs)

    @property
    def registered_providers(self) -> list[str]:
        return sorted(self._registry)

    def __contains__(self, name: str) -> bool:
        return name in self._registry

    @staticmethod
    def _create_openai(**kwargs: Any) -> BaseChatModel:
        from langchain_openai import ChatOpenAI

        # Built-in web search is only available on the Responses API.
        kwargs.setdefault("use_responses_api", True)
        return ChatOpenAI(**kwargs)

    @staticmethod
    def _create_anthropic(**kwargs: Any) -> BaseChatModel:
        from langchain_anthropic import ChatAnthropic

        return ChatAnthropic(**kwargs)


def create_chat_model(config: ModelConfig, model: str | None = None) -> BaseChatModel:
    """Create the chat model named by *model* (default ``config.model``)."""
    config.validate()
    return LLMProviderFactory().create(
        config.provider,
        model=model or config.model,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
        timeout=config.timeout,
    )


def build_gateway(
    config: ModelConfig,
    model: str | None = None,
    loop: StepLoopConfig | None = None,
) -> ModelGateway:
    """Create a :class:`ModelGateway` with the provider's search wiring."""
    search_tools, search_name = _search_wiring(config)
    provider_options: dict[str, Any] = {}
    if loop is not None and not loop.parallel_tool_calls and config.provider == "openai":
        provider_options["parallel_tool_calls"] = False
    return ModelGateway(
        create_chat_model(config, model),
        search_tools=search_tools,
        search_tool_name=search_name,
        provider_options=provider_options,
        tool_choice_aliases=_TOOL_CHOICE_ALIASES[config.provider],
    )


def _search_wiring(config: ModelConfig) -> tuple[list[dict[str, Any]], str]:
    """Return ``(search tool specs, tool name to pin)`` for the provider."""
    if config.provider == "anthropic":
        return (
            [{"type": "web_search_20250305", "name": "web_search", "max_uses": 5}],
            "web_search",
        )
    location = {"type": "approximate", "country": config.search_country}
    return [{"type": WEB_SEARCH_TOOL, "user_location": location}], WEB_SEARCH_TOOL
