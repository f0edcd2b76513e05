"""Infrastructure layer for audience-lab.

Re-exports the public API surface for convenience::

    from audience_lab.infrastructure import (
        AppConfig, ModelConfig, StepLoopConfig, ResearchConfig,
        StepChannel, drain_to, ModelGateway,
    )
"""

from audience_lab.infrastructure.channel import (
    StepChannel,
    drain_to,
    serialize_event,
    to_jsonable,
)
from audience_lab.infrastructure.config import (
    AppConfig,
    ModelConfig,
    ResearchConfig,
    StepLoopConfig,
    load_config_from_json,
)
from audience_lab.infrastructure.llm import (
    LLMError,
    LLMResponseError,
    ModelGateway,
    Source,
    TextResult,
    build_gateway,
    create_chat_model,
)

__all__ = [
    # Channel
    "StepChannel",
    "drain_to",
    "serialize_event",
    "to_jsonable",
    # Configuration
    "AppConfig",
    "ModelConfig",
    "ResearchConfig",
    "StepLoopConfig",
    "load_config_from_json",
    # LLM
    "LLMError",
    "LLMResponseError",
    "ModelGateway",
    "Source",
    "TextResult",
    "build_gateway",
    "create_chat_model",
]
