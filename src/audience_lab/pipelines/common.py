"""Pieces shared by every pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from audience_lab.infrastructure.config import AppConfig
from audience_lab.infrastructure.llm import ModelGateway, build_gateway

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineModels:
    """The gateways a pipeline talks to.

    Attributes
    ----------
    agent:
        Drives the step loop.
    research:
        Answers web-search calls made inside tools.  Defaults to ``agent``.
    structured:
        Produces the heavier structured objects (segments, niche
        classification).  Defaults to ``research``, then ``agent``.
    """

    agent: ModelGateway
    research: ModelGateway | None = None
    structured: ModelGateway | None = None

    @property
    def research_gateway(self) -> ModelGateway:
        return self.research or self.agent

    @property
    def structured_gateway(self) -> ModelGateway:
        return self.structured or self.research or self.agent

    @classmethod
    def single(cls, gateway: ModelGateway) -> PipelineModels:
        return cls(agent=gateway)

    @classmethod
    def from_config(cls, config: AppConfig) -> PipelineModels:
        """Build the three gateways named by ``config.model``."""
        logger.info(
            "PipelineModels: provider=%s agent=%s research=%s structured=%s",
            config.model.provider,
            config.model.model,
            config.model.tool_model,
            config.model.structured_model,
        )
        return cls(
            agent=build_gateway(config.model, loop=config.loop),
            research=build_gateway(config.model, model=config.model.tool_model),
            structured=build_gateway(config.model, model=config.model.structured_model),
        )


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
