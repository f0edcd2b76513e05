"""Shared fixtures for the audience-lab test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import pytest

from audience_lab.infrastructure.llm import ModelGateway
from audience_lab.pipelines.common import PipelineModels
from audience_lab.testing import MockStructuredChatModel, ScriptedChatModel

ModelsFactory = Callable[..., tuple[PipelineModels, ScriptedChatModel, MockStructuredChatModel]]


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_models() -> ModelsFactory:
    """Build ``PipelineModels`` from a scripted agent and a mock tool model.

    Returns ``(models, agent_model, tool_model)`` so tests can inspect what
    each chat model received.
    """

    def factory(
        script: Sequence[Any] = (),
        text_responses: Sequence[Any] = ("Search answer",),
        structured: Sequence[Any] = (),
    ) -> tuple[PipelineModels, ScriptedChatModel, MockStructuredChatModel]:
        agent = ScriptedChatModel(responses=list(script))
        tools = MockStructuredChatModel(
            text_responses=list(text_responses),
            structured_responses=list(structured),
        )
        models = PipelineModels(agent=ModelGateway(agent), research=ModelGateway(tools))
        return models, agent, tools

    return factory
