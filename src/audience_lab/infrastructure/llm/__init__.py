"""LLM integration layer for audience-lab.

This sub-package is the **model invocation boundary**: everything above it
talks to a language model only through :class:`ModelGateway`, which wraps a
LangChain ``BaseChatModel`` and exposes four capabilities -- free text (with
optional tools), web-search-grounded text, schema-validated objects, and
incremental streaming.

Public API
----------
ModelGateway
    Capability wrapper around a ``BaseChatModel``.
TextResult / Source
    Structured result of a text generation.
LLMError
    Base exception for all LLM-related failures.
create_chat_model / build_gateway
    Provider factory (OpenAI, Anthropic).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


# =========================================================================== #
#  Exceptions                                                                  #
# =========================================================================== #

class LLMError(Exception):
    """Base exception for LLM provider errors.

    Fatal to the current run: the step loop publishes a failure event and
    re-raises.
    """


class LLMConnectionError(LLMError):
    """Raised when the provider cannot be reached."""


class LLMRateLimitError(LLMError):
    """Raised when the provider returns a rate-limit / quota error."""


class LLMResponseError(LLMError):
    """Raised when the provider returns an unparseable or invalid response."""


# =========================================================================== #
#  Data structures                                                             #
# =========================================================================== #

@dataclass(frozen=True)
class Source:
    """A web citation attached to a generated answer."""

    url: str
    title: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "title": self.title or self.url}


@dataclass(frozen=True)
class TextResult:
    """Result of a text generation.

    Attributes
    ----------
    text:
        The generated text content.
    sources:
        URL citations harvested from provider annotations.
    tool_calls:
        Tool calls requested by the model (LangChain ``ToolCall`` dicts).
    """

    text: str
    sources: tuple[Source, ...] = ()
    tool_calls: tuple[dict[str, Any], ...] = field(default_factory=tuple)


from audience_lab.infrastructure.llm.gateway import ModelGateway  # noqa: E402
from audience_lab.infrastructure.llm.factory import (  # noqa: E402
    LLMProviderFactory,
    build_gateway,
    create_chat_model,
)

__all__ = [
    # Exceptions
    "LLMError",
    "LLMConnectionError",
    "LLMRateLimitError",
    "LLMResponseError",
    # Data
    "Source",
    "TextResult",
    # Gateway
    "ModelGateway",
    "LLMProviderFactory",
    "build_gateway",
    "create_chat_model",
]
