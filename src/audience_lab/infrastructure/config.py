"""Configuration dataclasses for audience-lab.

Each config is a plain ``dataclass`` with a ``validate()`` method that raises
``ValueError`` on invalid combinations.  No third-party dependencies -- just
stdlib ``dataclasses``.

Configs are **frozen** (``frozen=True``) so a run can hold a reference
without the values changing underneath it.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from audience_lab.domain.enums import ResearchDepth
from audience_lab.domain.exceptions import ConfigError

ENV_PREFIX = "AUDIENCE_LAB_"


def _filtered(cls: type, data: Mapping[str, Any]) -> dict[str, Any]:
    valid_keys = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in valid_keys}


# ===================================================================== #
#  Model Configuration                                                   #
# ===================================================================== #

_VALID_PROVIDERS = frozenset({"openai", "anthropic"})


@dataclass(frozen=True)
class ModelConfig:
    """Which chat models the pipelines talk to.

    Attributes
    ----------
    provider:
        LLM backend identifier (``"openai"`` or ``"anthropic"``).
    model:
        Model driving the step loop (the persona / research agent).
    tool_model:
        Cheaper model used inside tools for web-search answers and
        extraction.
    structured_model:
        Model used for the heavier structured generations (ICP segments,
        niche classification).
    temperature:
        Sampling temperature for all calls.
    max_tokens:
        Maximum tokens per response.
    search_country:
        Approximate user location handed to the web-search tool.
    timeout:
        Per-request timeout in seconds.
    """

    provider: str = "openai"
    model: str = "gpt-4o"
    tool_model: str = "gpt-4o-mini"
    structured_model: str = "gpt-4o"
    temperature: float = 0.7
    max_tokens: int = 4096
    search_country: str = "US"
    timeout: float = 60.0

    def validate(self) -> None:
        if self.provider not in _VALID_PROVIDERS:
            raise ValueError(
                f"provider must be one of {sorted(_VALID_PROVIDERS)}, got '{self.provider}'"
            )
        if not self.model:
            raise ValueError("model must not be empty")
        if not (0.0 <= self.temperature <= 2.0):
            raise ValueError(f"temperature must be in [0, 2], got {self.temperature}")
        if self.max_tokens < 1:
            raise ValueError(f"max_tokens must be >= 1, got {self.max_tokens}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {self.timeout}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ModelConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Step Loop Configuration                                               #
# ===================================================================== #

@dataclass(frozen=True)
class StepLoopConfig:
    """Parameters governing one step-loop run.

    Attributes
    ----------
    max_steps:
        Hard upper limit on model round-trips.  Always part of the stop
        condition set.
    wall_clock_seconds:
        Ceiling on the whole run's duration, checked before every step.
        ``0`` disables it.
    parallel_tool_calls:
        Whether the provider may emit several tool calls per step.  Tool
        calls are executed serially either way.
    strict_phase_order:
        If ``True``, out-of-order journey phase completions are rejected.
    """

    max_steps: int = 15
    wall_clock_seconds: float = 120.0
    parallel_tool_calls: bool = False
    strict_phase_order: bool = True

    def validate(self) -> None:
        if self.max_steps < 1:
            raise ValueError(f"max_steps must be >= 1, got {self.max_steps}")
        if self.wall_clock_seconds < 0:
            raise ValueError(
                f"wall_clock_seconds must be >= 0, got {self.wall_clock_seconds}"
            )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StepLoopConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Research Configuration                                                #
# ===================================================================== #

@dataclass(frozen=True)
class ResearchConfig:
    """Knobs for the social-profile research pipelines.

    Attributes
    ----------
    research_depth:
        ``"quick"`` skips comparative analysis; ``"deep"`` asks for full
        URL expansion.
    max_article_urls:
        Cap on article URLs processed (user-supplied plus discovered).
    max_additional_urls:
        Cap on extra URLs researched by ``deepResearch``.
    min_evidence_score:
        Segments scoring below this are rejected by the validator.
    """

    research_depth: str = ResearchDepth.STANDARD.value
    max_article_urls: int = 3
    max_additional_urls: int = 3
    min_evidence_score: float = 3.0

    def validate(self) -> None:
        valid = {d.value for d in ResearchDepth}
        if self.research_depth not in valid:
            raise ValueError(
                f"research_depth must be one of {sorted(valid)}, got '{self.research_depth}'"
            )
        if self.max_article_urls < 0:
            raise ValueError(f"max_article_urls must be >= 0, got {self.max_article_urls}")
        if self.max_additional_urls < 0:
            raise ValueError(
                f"max_additional_urls must be >= 0, got {self.max_additional_urls}"
            )
        if not (0.0 <= self.min_evidence_score <= 5.0):
            raise ValueError(
                f"min_evidence_score must be in [0, 5], got {self.min_evidence_score}"
            )

    @property
    def depth(self) -> ResearchDepth:
        return ResearchDepth(self.research_depth)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ResearchConfig:
        cfg = cls(**_filtered(cls, data))
        cfg.validate()
        return cfg


# ===================================================================== #
#  Application Configuration                                             #
# ===================================================================== #

@dataclass(frozen=True)
class AppConfig:
    """All configuration sections for one process."""

    model: ModelConfig = field(default_factory=ModelConfig)
    loop: StepLoopConfig = field(default_factory=StepLoopConfig)
    research: ResearchConfig = field(default_factory=ResearchConfig)

    def validate(self) -> None:
        self.model.validate()
        self.loop.validate()
        self.research.validate()

    def to_dict(self) -> dict[str, Any]:
        return {
            "model": self.model.to_dict(),
            "loop": self.loop.to_dict(),
            "research": self.research.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AppConfig:
        return cls(
            model=ModelConfig.from_dict(data.get("model") or {}),
            loop=StepLoopConfig.from_dict(data.get("loop") or {}),
            research=ResearchConfig.from_dict(data.get("research") or {}),
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppConfig:
        """Build a config from ``AUDIENCE_LAB_*`` environment variables.

        Variable names are ``AUDIENCE_LAB_<SECTION>_<FIELD>`` in upper case,
        e.g. ``AUDIENCE_LAB_MODEL_PROVIDER=anthropic`` or
        ``AUDIENCE_LAB_LOOP_MAX_STEPS=20``.
        """
        env = os.environ if environ is None else environ
        sections: dict[str, dict[str, Any]] = {}
        for section, section_cls in _CONFIG_MAP.items():
            values: dict[str, Any] = {}
            for f in fields(section_cls):
                key = f"{ENV_PREFIX}{section.upper()}_{f.name.upper()}"
                if key in env:
                    values[f.name] = _coerce(env[key], getattr(section_cls(), f.name), key)
            sections[section] = values
        return cls.from_dict(sections)


def _coerce(raw: str, default: Any, key: str) -> Any:
    """Convert an environment string to the type of *default*."""
    try:
        if isinstance(default, bool):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as exc:
        raise ConfigError(f"Invalid value for {key}: {raw!r}") from exc
    return raw


# ===================================================================== #
#  Unified config loader                                                 #
# ===================================================================== #

_CONFIG_MAP: dict[str, type] = {
    "model": ModelConfig,
    "loop": StepLoopConfig,
    "research": ResearchConfig,
}


def load_config_from_json(json_str: str) -> AppConfig:
    """Parse a JSON document into an :class:`AppConfig`.

    The JSON is expected to be an object whose top-level keys correspond to
    config section names (``model``, ``loop``, ``research``).  Unknown
    sections and unknown fields are ignored.
    """
    try:
        raw = json.loads(json_str)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid config JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("Top-level JSON must be an object")
    try:
        cfg = AppConfig.from_dict(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(str(exc)) from exc
    return cfg
