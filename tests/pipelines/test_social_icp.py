"""Tests for the social profile ICP pipeline."""

from __future__ import annotations

import pytest

from audience_lab.domain.enums import SocialPlatform, StopReason
from audience_lab.domain.exceptions import UnsupportedPlatformError
from audience_lab.pipelines.social_icp import run_social_icp
from audience_lab.schemas.social import (
    AudienceAnalysis,
    AudienceSignals,
    Behaviors,
    Demographics,
    ICPSegment,
    ICPSegments,
    ProfileLookup,
)
from audience_lab.testing import ai_message, tool_call

URL = "https://www.instagram.com/bakewithmaya"


def _segment(name: str) -> ICPSegment:
    return ICPSegment(
        segment_name=name,
        persona_description=f"{name} who follow for recipes",
        demographics=Demographics(age_range="25-34", gender="mixed"),
        behaviors=Behaviors(
            follow_reason="recipes", engagement_style="liker", purchase_influence="medium"
        ),
        estimated_segment_size="30%",
    )


def _structured() -> list:
    return [
        ProfileLookup(handle="bakewithmaya", platform="instagram", follower_count="120K"),
        AudienceAnalysis(
            content_tone="warm",
            primary_appeal="approachable baking",
            audience_signals=AudienceSignals(likely_demographics="home cooks 25-44"),
        ),
        ICPSegments(icp_segments=[_segment("Home Bakers"), _segment("Students"), _segment("Parents")]),
    ]


def _script() -> list:
    return [
        ai_message(tool_call("lookupProfile", {"handle": "bakewithmaya", "platform": "instagram"})),
        ai_message(tool_call("analyzeAudience", {"profileSummary": "A baking creator"})),
        ai_message(tool_call("generateICPs", {"analysisContext": "Bakers"})),
    ]


class TestRunSocialICP:

    @pytest.mark.asyncio
    async def test_three_tool_run(self, make_models) -> None:
        models, agent, tools = make_models(_script(), structured=_structured())
        outcome = await run_social_icp(models, URL)

        assert outcome.run.stop_reason is StopReason.CONDITION_MET
        assert outcome.run.steps_completed == 3
        assert agent.tool_choices == ["required"] * 3
        assert tools.structured_calls == ["ProfileLookup", "AudienceAnalysis", "ICPSegments"]

        result = outcome.result
        assert result is not None
        assert result.profile_analyzed == "@bakewithmaya"
        assert result.platform == "instagram"
        assert result.total_followers == "120K"
        assert [s.segment_name for s in result.icp_segments] == ["Home Bakers", "Students", "Parents"]

    @pytest.mark.asyncio
    async def test_state_is_filled_per_tool(self, make_models) -> None:
        models, _, _ = make_models(_script(), structured=_structured())
        outcome = await run_social_icp(models, URL)
        assert outcome.state.platform is SocialPlatform.INSTAGRAM
        assert outcome.state.profile_data is not None
        assert outcome.state.audience_analysis is not None
        assert outcome.state.audience_analysis.primary_appeal == "approachable baking"

    @pytest.mark.asyncio
    async def test_unknown_followers_without_lookup(self, make_models) -> None:
        structured = [_structured()[2]]
        script = [ai_message(tool_call("generateICPs", {"analysisContext": "Bakers"}))]
        models, _, _ = make_models(script, structured=structured)
        outcome = await run_social_icp(models, URL)
        assert outcome.completed
        assert outcome.result.total_followers == "Unknown"

    @pytest.mark.asyncio
    async def test_generation_failure_yields_no_result(self, make_models) -> None:
        script = [ai_message(tool_call("generateICPs", {"analysisContext": "Bakers"}))]
        models, _, _ = make_models(script, structured=[])
        outcome = await run_social_icp(models, URL)

        inv = outcome.run.history[0].invocations[0]
        assert inv.failed
        assert inv.output == {"icpSegments": []}
        assert outcome.to_dict()["completed"] is False

    @pytest.mark.asyncio
    async def test_unsupported_url_raises(self, make_models) -> None:
        models, agent, _ = make_models()
        with pytest.raises(UnsupportedPlatformError):
            await run_social_icp(models, "https://example.com/someone")
        assert agent.call_count == 0
