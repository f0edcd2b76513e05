"""Tests for the evidence-based social ICP pipeline."""

from __future__ import annotations

import json

import pytest

from audience_lab.domain.enums import ResearchDepth, SocialPlatform, StopReason
from audience_lab.domain.values import ToolInvocation
from audience_lab.infrastructure.config import ResearchConfig, StepLoopConfig
from audience_lab.pipelines.social_icp_v2 import (
    EvidenceRequest,
    EvidenceTool,
    ResearchState,
    build_evidence_tools,
    run_evidence_icp,
)
from audience_lab.schemas.social import (
    AudienceConstraints,
    DiscoveredUrls,
    EvidenceBasedICPSegment,
    EvidenceBasedICPSegments,
    NicheClassification,
    PrimaryNiche,
    UrlExpansion,
)
from audience_lab.testing import ai_message, segment_payload, tool_call

URL = "https://www.tiktok.com/@bakewithmaya"


async def _invoke(registry, call: dict) -> ToolInvocation:
    return await registry.execute(
        ToolInvocation(tool_name=call["name"], call_id=call["id"], input=call["args"])
    )


def _state(depth: ResearchDepth = ResearchDepth.STANDARD, articles: list[str] | None = None) -> ResearchState:
    return ResearchState(
        primary_url=URL,
        handle="bakewithmaya",
        platform=SocialPlatform.TIKTOK,
        depth=depth,
        article_urls=list(articles or []),
    )


def _expansion(*interviews: str) -> UrlExpansion:
    return UrlExpansion(
        primary_url=URL,
        discovered_urls=DiscoveredUrls(interviews=list(interviews)),
    )


def _niche() -> NicheClassification:
    return NicheClassification(
        primary_niche=PrimaryNiche(industry="Food", sub_niche="Baking"),
        audience_constraints=AudienceConstraints(unlikely_segments=["crypto traders"]),
    )


def _candidates() -> list[dict]:
    return [
        segment_payload("Home Bakers", score=4.5),
        segment_payload("Casual Scrollers", score=2.0),
        segment_payload("Crypto Traders", "Crypto traders who like bread", score=4.0),
    ]


def _script() -> list:
    return [
        ai_message(tool_call("expandUrls", {"primaryHandle": "bakewithmaya", "primaryPlatform": "tiktok"})),
        ai_message(tool_call("classifyNiche", {"profileSummary": "Sourdough baking videos"})),
        ai_message(
            tool_call(
                "generateEvidenceBasedICPs",
                {"profileContext": "Baking creator", "nicheContext": "Food > Baking"},
            )
        ),
        ai_message(
            tool_call(
                "validateICPs",
                {
                    "icpSegments": json.dumps(_candidates()),
                    "nicheConstraints": json.dumps(_niche().to_wire()),
                },
            )
        ),
    ]


def _structured() -> list:
    generated = EvidenceBasedICPSegments(
        icp_segments=[
            EvidenceBasedICPSegment.model_validate(segment_payload("Home Bakers", score=4.0)),
            EvidenceBasedICPSegment.model_validate(segment_payload("Students", score=None)),
        ]
    )
    return [_expansion("https://press.example/interview"), _niche(), generated]


class TestEvidenceRequest:

    def test_requires_profile_url(self) -> None:
        with pytest.raises(ValueError):
            EvidenceRequest(profile_urls=())


class TestEvidenceRegistry:

    def test_standard_depth_has_all_tools(self, make_models) -> None:
        models, _, _ = make_models()
        registry = build_evidence_tools(_state(), models)
        assert registry.names == tuple(t.value for t in EvidenceTool)

    def test_quick_depth_omits_comparables(self, make_models) -> None:
        models, _, _ = make_models()
        registry = build_evidence_tools(_state(ResearchDepth.QUICK), models)
        assert EvidenceTool.FIND_COMPARABLE_CREATORS.value not in registry
        assert len(registry) == 6


class TestEvidenceTools:

    @pytest.mark.asyncio
    async def test_expand_urls_fills_free_slots(self, make_models) -> None:
        models, _, _ = make_models(
            structured=[_expansion("https://a.example/1", "https://a.example/2", "https://a.example/3")]
        )
        state = _state(articles=["https://user.example/piece"])
        registry = build_evidence_tools(state, models, ResearchConfig(max_article_urls=3))
        inv = await _invoke(
            registry,
            tool_call("expandUrls", {"primaryHandle": "bakewithmaya", "primaryPlatform": "tiktok"})
        )
        assert inv.completed
        assert state.discovered_article_urls == ["https://a.example/1", "https://a.example/2"]
        assert state.articles_to_process == [
            "https://user.example/piece",
            "https://a.example/1",
            "https://a.example/2",
        ]
        assert inv.output["articlesDiscovered"] == 3
        assert state.sources_analyzed == 1

    @pytest.mark.asyncio
    async def test_expand_urls_without_free_slots(self, make_models) -> None:
        models, _, _ = make_models(structured=[_expansion("https://a.example/1")])
        state = _state(articles=["https://u.example/1", "https://u.example/2", "https://u.example/3"])
        registry = build_evidence_tools(state, models)
        await _invoke(
            registry,
            tool_call("expandUrls", {"primaryHandle": "bakewithmaya", "primaryPlatform": "tiktok"})
        )
        assert state.discovered_article_urls == []

    @pytest.mark.asyncio
    async def test_article_failure_returns_empty_context(self, make_models) -> None:
        models, _, _ = make_models(structured=[])
        state = _state()
        registry = build_evidence_tools(state, models)
        inv = await _invoke(
            registry,
            tool_call("extractArticleContext", {"articleUrl": "https://press.example/i"})
        )
        assert inv.completed
        assert inv.output["sourceUrl"] == "https://press.example/i"
        assert inv.output["insightCount"] == 0
        assert "error" in inv.output
        assert state.article_contexts == []

    @pytest.mark.asyncio
    async def test_generate_reports_average_score(self, make_models) -> None:
        models, _, _ = make_models(structured=_structured()[2:])
        registry = build_evidence_tools(_state(), models)
        inv = await _invoke(
            registry,
            tool_call(
                "generateEvidenceBasedICPs",
                {"profileContext": "ctx", "nicheContext": "niche", "unlikelySegments": ["crypto"]},
            )
        )
        assert inv.output["segmentCount"] == 2
        assert inv.output["averageConfidenceScore"] == 2.0
        assert inv.output["articleEvidenceUsed"] is False

    @pytest.mark.asyncio
    async def test_validate_uses_niche_unlikely_segments(self, make_models) -> None:
        models, _, _ = make_models()
        state = _state()
        registry = build_evidence_tools(state, models)
        inv = await _invoke(
            registry,
            tool_call(
                "validateICPs",
                {
                    "icpSegments": json.dumps(_candidates()),
                    "nicheConstraints": json.dumps(_niche().to_wire()),
                },
            )
        )
        assert inv.output["validCount"] == 1
        assert [s["segmentName"] for s in inv.output["excludedSegments"]] == [
            "Casual Scrollers",
            "Crypto Traders",
        ]
        assert inv.output["excludedSegments"][0]["score"] == 2.0
        assert inv.output["excludedSegments"][1].get("score") is None
        assert [s.segment_name for s in state.excluded_segments] == ["Casual Scrollers", "Crypto Traders"]

    @pytest.mark.asyncio
    async def test_validate_rejects_non_array(self, make_models) -> None:
        models, _, _ = make_models()
        state = _state()
        registry = build_evidence_tools(state, models)
        inv = await _invoke(
            registry,
            tool_call("validateICPs", {"icpSegments": "{}", "nicheConstraints": "{}"})
        )
        assert inv.failed
        assert inv.output["validCount"] == 0
        assert state.validation is None

    @pytest.mark.asyncio
    async def test_validate_survives_malformed_candidates(self, make_models) -> None:
        models, _, _ = make_models()
        state = _state()
        registry = build_evidence_tools(state, models)
        no_evidence = segment_payload("Quiet Readers")
        no_evidence["evidence"] = None
        broken = segment_payload("Broken")
        del broken["behaviors"]
        inv = await _invoke(
            registry,
            tool_call(
                "validateICPs",
                {
                    "icpSegments": json.dumps(
                        [segment_payload("Home Bakers", score=4.5), broken, no_evidence]
                    ),
                    "nicheConstraints": "{}",
                },
            )
        )
        assert inv.completed
        assert inv.output["validCount"] == 1
        assert inv.output["excludedCount"] == 2
        assert inv.output["excludedSegments"][0]["rejectionReason"].startswith("Malformed segment.")
        assert inv.output["excludedSegments"][1]["rejectionReason"].startswith(
            "Evidence score too low (0/5)"
        )
        assert state.validation is not None
        assert [s.segment_name for s in state.validation.accepted] == ["Home Bakers"]


class TestRunEvidenceICP:

    @pytest.mark.asyncio
    async def test_full_run(self, make_models) -> None:
        models, agent, _ = make_models(_script(), structured=_structured())
        request = EvidenceRequest(
            profile_urls=(URL,),
            article_urls=("https://www.instagram.com/someone", "https://news.example/a"),
            research_depth=ResearchDepth.QUICK,
        )
        outcome = await run_evidence_icp(models, request)

        assert outcome.run.stop_reason is StopReason.CONDITION_MET
        assert outcome.run.steps_completed == 4
        assert agent.tool_choices == ["required"] * 4
        assert outcome.state.article_urls == ["https://news.example/a"]
        assert outcome.state.discovered_article_urls == ["https://press.example/interview"]

        result = outcome.result
        assert result is not None
        assert result.profile_analyzed == "@bakewithmaya"
        assert result.platform == "tiktok"
        assert [s.segment_name for s in result.icp_segments] == ["Home Bakers"]
        assert len(result.excluded_segments) == 2
        assert result.research_metadata.research_depth is ResearchDepth.QUICK
        assert result.research_metadata.sources_analyzed == 1
        assert result.research_metadata.comparable_creators_used == 0
        assert result.niche_classification.primary_niche.sub_niche == "Baking"

    @pytest.mark.asyncio
    async def test_additional_urls_in_prompt(self, make_models) -> None:
        models, agent, _ = make_models(_script(), structured=_structured())
        request = EvidenceRequest(
            profile_urls=(URL, "https://www.youtube.com/@bakewithmaya"),
            creator_name="Maya",
        )
        await run_evidence_icp(models, request)
        opening = agent.transcripts[0][-1].content
        assert "Creator name: Maya." in opening
        assert "https://www.youtube.com/@bakewithmaya" in opening

    @pytest.mark.asyncio
    async def test_no_result_without_validation(self, make_models) -> None:
        models, _, _ = make_models(_script()[:1], structured=_structured())
        outcome = await run_evidence_icp(
            models,
            EvidenceRequest(profile_urls=(URL,)),
            config=StepLoopConfig(max_steps=1, wall_clock_seconds=0),
        )
        assert outcome.run.stop_reason is StopReason.MAX_STEPS
        assert outcome.result is None
        assert outcome.to_dict()["result"] is None
        assert not outcome.completed
