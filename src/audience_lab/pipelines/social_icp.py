"""Social profile ICP generation.

Three tools in a fixed order: look the profile up, analyse its audience,
generate 3-6 follower segments.  The loop stops once ``generateICPs`` has a
result (or after ``max_steps``).
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import Field

from audience_lab.domain.enums import SocialPlatform
from audience_lab.domain.platforms import parse_profile_url
from audience_lab.infrastructure.channel import StepChannel
from audience_lab.infrastructure.config import StepLoopConfig
from audience_lab.pipelines import prompts
from audience_lab.pipelines.common import PipelineModels
from audience_lab.schemas.common import WireModel
from audience_lab.schemas.social import (
    AudienceAnalysis,
    ICPSegments,
    ProfileLookup,
    SocialProfileICPResult,
)
from audience_lab.services.loop import RunResult, StepLoopController
from audience_lab.services.policies import required_until, tool_called
from audience_lab.services.tools import Tool, ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_LOOP = StepLoopConfig(max_steps=10, wall_clock_seconds=120.0)


class SocialICPTool(str, Enum):
    LOOKUP_PROFILE = "lookupProfile"
    ANALYZE_AUDIENCE = "analyzeAudience"
    GENERATE_ICPS = "generateICPs"


@dataclass
class ProfileResearchState:
    """Findings gathered during one run, each written by one tool."""

    handle: str
    platform: SocialPlatform
    profile_data: ProfileLookup | None = None
    audience_analysis: AudienceAnalysis | None = None

    @property
    def total_followers(self) -> str:
        if self.profile_data is not None and self.profile_data.follower_count:
            return self.profile_data.follower_count
        return "Unknown"


class LookupProfileInput(WireModel):
    handle: str = Field(description="The social media handle to look up")
    platform: str = Field(
        description="The platform (instagram, tiktok, twitter, youtube, linkedin)"
    )


class AnalyzeAudienceInput(WireModel):
    profile_summary: str = Field(description="Summary of the profile data to analyze")


class GenerateICPsInput(WireModel):
    analysis_context: str = Field(
        description="Context from profile lookup and audience analysis"
    )


def build_social_icp_tools(state: ProfileResearchState, models: PipelineModels) -> ToolRegistry:
    """Tools for one social-ICP run, closed over *state*."""

    async def lookup_profile(args: LookupProfileInput) -> dict[str, Any]:
        found = await models.research_gateway.search(
            f"Research the {args.platform} profile @{args.handle}. What do we know "
            "about this creator, their content, and their audience?",
            system=prompts.PROFILE_RESEARCH_SYSTEM,
        )
        profile = await models.research_gateway.generate_structured(
            f"Extract structured profile data from this research about @{args.handle} "
            f"on {args.platform}:\n\n{found.text}\n\n"
            "Use null or an empty list for anything unknown.",
            ProfileLookup,
        )
        state.profile_data = profile
        return {**profile.to_wire(), "sourceCount": len(found.sources)}

    async def analyze_audience(args: AnalyzeAudienceInput) -> dict[str, Any]:
        analysis = await models.research_gateway.generate_structured(
            "Analyze this social media profile to infer audience characteristics: "
            "content type, tone, motivations to follow, likely demographics, purchase "
            f"behaviors and 4-6 distinct segments.\n\n{args.profile_summary}",
            AudienceAnalysis,
        )
        state.audience_analysis = analysis
        return analysis.to_wire()

    async def generate_icps(args: GenerateICPsInput) -> dict[str, Any]:
        context = args.analysis_context
        if state.audience_analysis is not None:
            context += "\n\nAudience analysis:\n" + json.dumps(state.audience_analysis.to_wire())
        generated = await models.structured_gateway.generate_structured(
            "Generate 3-6 DISTINCT ICP segments for the followers of this creator. "
            "Include obvious and unexpected follower types, focus on why they follow, "
            f"and make segment sizes total roughly 100%.\n\nContext:\n{context}",
            ICPSegments,
        )
        result = SocialProfileICPResult(
            profile_analyzed=f"@{state.handle}",
            platform=state.platform.value,
            total_followers=state.total_followers,
            icp_segments=generated.icp_segments,
        )
        return result.to_wire()

    return ToolRegistry(
        [
            Tool(
                name=SocialICPTool.LOOKUP_PROFILE,
                description=(
                    "Look up a social media profile using web search. "
                    "Call this first to gather profile data."
                ),
                input_model=LookupProfileInput,
                execute=lookup_profile,
                default_output={"contentThemes": [], "sourceCount": 0},
            ),
            Tool(
                name=SocialICPTool.ANALYZE_AUDIENCE,
                description=(
                    "Analyze profile data to infer audience characteristics. "
                    "Call this after lookupProfile."
                ),
                input_model=AnalyzeAudienceInput,
                execute=analyze_audience,
                default_output={"segmentOpportunities": []},
            ),
            Tool(
                name=SocialICPTool.GENERATE_ICPS,
                description=(
                    "Generate 3-6 distinct ICP segments from the profile and audience "
                    "analysis. Call this last."
                ),
                input_model=GenerateICPsInput,
                execute=generate_icps,
                default_output={"icpSegments": []},
            ),
        ]
    )


@dataclass
class SocialICPOutcome:
    run: RunResult
    state: ProfileResearchState

    @property
    def completed(self) -> bool:
        return self.run.completed

    @property
    def result(self) -> SocialProfileICPResult | None:
        output = self.run.terminal_output
        return SocialProfileICPResult.model_validate(output) if output else None

    def to_dict(self) -> dict[str, Any]:
        result = self.result
        return {
            "completed": self.completed,
            "stopReason": self.run.stop_reason.value,
            "steps": self.run.steps_completed,
            "result": result.to_wire() if result is not None else None,
        }


async def run_social_icp(
    models: PipelineModels,
    profile_url: str,
    config: StepLoopConfig | None = None,
    channel: StepChannel | None = None,
    cancel_event: asyncio.Event | None = None,
) -> SocialICPOutcome:
    """Generate follower ICP segments for the profile at *profile_url*.

    Raises
    ------
    UnsupportedPlatformError, HandleExtractionError
        If *profile_url* cannot be parsed.
    """
    platform, handle = parse_profile_url(profile_url)
    state = ProfileResearchState(handle=handle, platform=platform)
    terminal = SocialICPTool.GENERATE_ICPS.value
    controller = StepLoopController(
        models.agent,
        build_social_icp_tools(state, models),
        stop_conditions=[tool_called(terminal)],
        tool_choice_policy=required_until(terminal),
        config=config or DEFAULT_LOOP,
        terminal_tool=terminal,
        channel=channel,
        pipeline="social-icp",
    )
    logger.info("Social ICP: @%s on %s", handle, platform.value)
    run = await controller.run(
        prompts.social_icp_system(profile_url, platform.value, handle),
        f"Generate ICP segments for {profile_url}",
        cancel_event=cancel_event,
    )
    return SocialICPOutcome(run=run, state=state)
