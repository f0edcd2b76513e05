"""Evidence-based social profile ICP generation.

A longer research chain than :mod:`audience_lab.pipelines.social_icp`:

``expandUrls -> deepResearch -> extractArticleContext* -> classifyNiche ->
findComparableCreators -> generateEvidenceBasedICPs -> validateICPs``

Every segment the model proposes must cite evidence and carry a 0-5 score.
``validateICPs`` runs the :class:`EvidenceValidator` over them and its
accepted/rejected partition becomes the result.  ``quick`` research depth
leaves ``findComparableCreators`` out of the registry altogether.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import Field

from audience_lab.domain.enums import ResearchDepth, SocialPlatform
from audience_lab.domain.platforms import filter_article_urls, parse_profile_url
from audience_lab.infrastructure.channel import StepChannel
from audience_lab.infrastructure.config import ResearchConfig, StepLoopConfig
from audience_lab.infrastructure.llm import LLMError
from audience_lab.pipelines import prompts
from audience_lab.pipelines.common import PipelineModels, utc_timestamp
from audience_lab.schemas.common import WireModel
from audience_lab.schemas.social import (
    ArticleContext,
    AudienceConstraints,
    ComparableCreator,
    ComparableCreators,
    EnhancedProfile,
    EvidenceBasedICPResult,
    EvidenceBasedICPSegments,
    ExcludedSegment,
    NicheClassification,
    ResearchMetadata,
    UrlExpansion,
)
from audience_lab.services.evidence import (
    EvidenceValidator,
    SegmentConstraints,
    ValidationResult,
)
from audience_lab.services.loop import RunResult, StepLoopController
from audience_lab.services.policies import required_until, tool_called
from audience_lab.services.tools import Tool, ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_LOOP = StepLoopConfig(max_steps=15, wall_clock_seconds=180.0)


class EvidenceTool(str, Enum):
    EXPAND_URLS = "expandUrls"
    DEEP_RESEARCH = "deepResearch"
    EXTRACT_ARTICLE_CONTEXT = "extractArticleContext"
    CLASSIFY_NICHE = "classifyNiche"
    FIND_COMPARABLE_CREATORS = "findComparableCreators"
    GENERATE_EVIDENCE_BASED_ICPS = "generateEvidenceBasedICPs"
    VALIDATE_ICPS = "validateICPs"


# ===================================================================== #
#  Accumulator                                                           #
# ===================================================================== #

@dataclass
class ResearchState:
    """Research findings for one run.

    Each structured finding is owned by one tool and replaced wholesale
    when that tool runs again; ``article_contexts`` is append-only and
    ``sources_analyzed`` only grows.
    """

    primary_url: str
    handle: str
    platform: SocialPlatform
    depth: ResearchDepth = ResearchDepth.STANDARD
    article_urls: list[str] = field(default_factory=list)
    url_expansion: UrlExpansion | None = None
    profile_data: EnhancedProfile | None = None
    niche_classification: NicheClassification | None = None
    comparable_creators: list[ComparableCreator] = field(default_factory=list)
    article_contexts: list[ArticleContext] = field(default_factory=list)
    discovered_article_urls: list[str] = field(default_factory=list)
    excluded_segments: list[ExcludedSegment] = field(default_factory=list)
    validation: ValidationResult | None = None
    sources_analyzed: int = 0

    @property
    def articles_to_process(self) -> list[str]:
        return [*self.article_urls, *self.discovered_article_urls]

    @property
    def total_followers(self) -> str:
        if self.profile_data is not None and self.profile_data.follower_count:
            return self.profile_data.follower_count
        return "Unknown"

    def build_result(self) -> EvidenceBasedICPResult:
        """Assemble the final result from the accumulated findings."""
        accepted = list(self.validation.accepted) if self.validation else []
        return EvidenceBasedICPResult(
            profile_analyzed=f"@{self.handle}",
            platform=self.platform.value,
            total_followers=self.total_followers,
            url_expansion=self.url_expansion,
            niche_classification=self.niche_classification,
            icp_segments=accepted,
            excluded_segments=list(self.excluded_segments),
            research_metadata=ResearchMetadata(
                research_depth=self.depth,
                sources_analyzed=self.sources_analyzed,
                comparable_creators_used=len(self.comparable_creators),
                generated_at=utc_timestamp(),
            ),
        )


# ===================================================================== #
#  Tool inputs                                                           #
# ===================================================================== #

class ExpandUrlsInput(WireModel):
    primary_handle: str = Field(description="The primary handle to research")
    primary_platform: str = Field(description="The platform of the primary handle")
    creator_name: str | None = Field(
        None, description="Known creator name to help with cross-platform search"
    )


class DeepResearchInput(WireModel):
    handle: str = Field(description="The handle to research")
    platform: str = Field(description="The platform")
    additional_urls: list[str] | None = Field(None, description="Additional URLs to research")


class ExtractArticleInput(WireModel):
    article_url: str = Field(description="The URL of the article to extract insights from")
    creator_name: str | None = Field(None, description="The creator's name")
    creator_handle: str | None = Field(None, description="The creator's social handle")


class ClassifyNicheInput(WireModel):
    profile_summary: str = Field(description="Summary of profile data to classify")
    content_themes: list[str] = Field(default_factory=list, description="Main content themes")
    hashtags: list[str] = Field(default_factory=list, description="Hashtags used")


class FindComparableInput(WireModel):
    niche: str = Field(description="The creator's niche")
    sub_niche: str = Field(description="The creator's sub-niche")
    follower_count: str = Field(description="Approximate follower count")
    similar_creators_from_expansion: list[str] | None = Field(
        None, description="Similar creators already found"
    )


class GenerateEvidenceICPsInput(WireModel):
    profile_context: str = Field(description="Full profile context")
    niche_context: str = Field(description="Niche classification context")
    comparable_audiences: list[str] | None = Field(
        None, description="Audience templates from comparable creators"
    )
    unlikely_segments: list[str] = Field(
        default_factory=list, description="Segments to AVOID generating"
    )
    article_insights: str | None = Field(
        None, description="JSON string of insights extracted from articles/interviews"
    )


class ValidateICPsInput(WireModel):
    icp_segments: str = Field(description="JSON string of ICP segments to validate")
    niche_constraints: str = Field(description="JSON string of niche constraints")
    unlikely_segments: list[str] = Field(
        default_factory=list, description="Segments that should not exist"
    )


# ===================================================================== #
#  Helpers                                                               #
# ===================================================================== #

def _article_section(articles: Sequence[ArticleContext]) -> str:
    if not articles:
        return ""
    blocks = []
    for idx, article in enumerate(articles, start=1):
        ins = article.extracted_insights
        quotes = ", ".join(f'"{q}"' for q in ins.creator_quotes) or "None"
        blocks.append(
            f"ARTICLE {idx}: {article.source_title or article.source_url}\n"
            f"- Source Type: {article.source_type}\n"
            f"- Quality Score: {article.quality_score:g}/5\n"
            f"- Demographics: {'; '.join(d.insight for d in ins.demographics) or 'None found'}\n"
            f"- Psychographics: {'; '.join(p.insight for p in ins.psychographics) or 'None found'}\n"
            f"- Creator Quotes: {quotes}\n"
            f"- Brand Mentions: {', '.join(ins.brand_mentions) or 'None'}\n"
            f"- Geography Signals: {', '.join(ins.geography_signals) or 'None'}"
        )
    return "HIGH-VALUE ARTICLE EVIDENCE (prioritize this):\n" + "\n\n".join(blocks)


def _parse_article_insights(raw: str | None) -> list[ArticleContext]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            return []
        return [ArticleContext.model_validate(item) for item in data]
    except ValueError as exc:
        logger.warning("generateEvidenceBasedICPs: ignoring unparseable article insights: %s", exc)
        return []


def _audience_constraints(raw: Any, state: ResearchState) -> AudienceConstraints:
    if isinstance(raw, dict) and isinstance(raw.get("audienceConstraints"), dict):
        return AudienceConstraints.model_validate(raw["audienceConstraints"])
    if state.niche_classification is not None:
        return state.niche_classification.audience_constraints
    return AudienceConstraints()


# ===================================================================== #
#  Registry factory                                                      #
# ===================================================================== #

def build_evidence_tools(
    state: ResearchState,
    models: PipelineModels,
    research: ResearchConfig | None = None,
    validator: EvidenceValidator | None = None,
) -> ToolRegistry:
    """Tools for one evidence-based run, closed over *state*."""
    research = research or ResearchConfig()
    validator = validator or EvidenceValidator(min_score=research.min_evidence_score)
    searcher = models.research_gateway

    async def expand_urls(args: ExpandUrlsInput) -> dict[str, Any]:
        subject = args.creator_name or args.primary_handle
        found = await searcher.search(
            f"Find all related URLs and profiles for @{args.primary_handle} on "
            f"{args.primary_platform}. Search for \"{subject} interview\" and "
            f"\"{subject} profile article\".",
            system=(
                "You are a social media investigator. Find other platforms, the "
                "website or link page, press and interview articles, podcast "
                "appearances, collaborators and similar creators."
            ),
        )
        state.sources_analyzed += 1
        expansion = await searcher.generate_structured(
            f"Extract URL expansion data from this research:\n\n{found.text}\n\n"
            f"Primary URL: {state.primary_url}\nPrimary Handle: @{args.primary_handle}\n"
            f"Primary Platform: {args.primary_platform}",
            UrlExpansion,
        )
        state.url_expansion = expansion
        found_articles = expansion.article_candidates()
        slots = research.max_article_urls - len(state.article_urls)
        if found_articles and slots > 0:
            state.discovered_article_urls = found_articles[:slots]
            logger.info("expandUrls: auto-discovered %d article(s)", len(state.discovered_article_urls))
        urls = expansion.discovered_urls
        return {
            **expansion.to_wire(),
            "message": (
                f"Found {len(urls.other_platforms)} other platforms, "
                f"{len(urls.collaborators)} collaborators, "
                f"{len(urls.similar_creators)} similar creators"
            ),
            "articlesDiscovered": len(found_articles),
            "articlesToProcess": list(state.discovered_article_urls),
        }

    async def deep_research(args: DeepResearchInput) -> dict[str, Any]:
        profile_text = await searcher.search(
            f"Research @{args.handle} on {args.platform}. Extract detailed profile "
            "data with evidence.",
            system=(
                "You are a social media researcher. Quote the bio, give the follower "
                "count, content themes with examples, every frequent hashtag, "
                "collaborators, brand mentions, geography signals and content style."
            ),
        )
        state.sources_analyzed += 1

        extra: list[str] = []
        for url in (args.additional_urls or [])[: research.max_additional_urls]:
            try:
                answer = await searcher.search(
                    f"Research this URL for additional information about the creator: {url}"
                )
            except LLMError as exc:
                logger.warning("deepResearch: skipping %s: %s", url, exc)
                continue
            extra.append(f"From {url}:\n{answer.text}")
            state.sources_analyzed += 1

        additional = "\n\nADDITIONAL SOURCES:\n" + "\n\n".join(extra) if extra else ""
        profile = await searcher.generate_structured(
            "Extract enhanced profile data with evidence from this research. List all "
            "hashtags with frequency and category, all collaborators with relationship, "
            f"and all geography signals.\n\nPRIMARY PROFILE:\n{profile_text.text}{additional}",
            EnhancedProfile,
        )
        state.profile_data = profile
        return {
            **profile.to_wire(),
            "evidenceSummary": {
                "hashtagCount": len(profile.hashtags),
                "collaboratorCount": len(profile.collaborators),
                "geographySignalCount": len(profile.geography_signals),
                "hasStrongLocationData": bool(profile.geography_signals),
            },
        }

    async def extract_article_context(args: ExtractArticleInput) -> dict[str, Any]:
        subject = args.creator_name or args.creator_handle or "a content creator"
        try:
            content = await searcher.search(
                f"Extract content from this article: {args.article_url}",
                system=(
                    "You extract article content. If it is paywalled, find summaries, "
                    "quotes or related coverage. Focus on audience demographics, "
                    "community, brand partnerships and creator quotes about the audience."
                ),
            )
            state.sources_analyzed += 1
            article = await models.structured_gateway.generate_structured(
                f"Extract audience insights from this article about {subject}.\n\n"
                f"ARTICLE URL: {args.article_url}\nARTICLE CONTENT:\n{content.text}\n\n"
                "Score quality 0-5: 5 for multiple direct creator quotes about the "
                "audience, 1 for no useful audience insight.",
                ArticleContext,
            )
        except LLMError as exc:
            logger.warning("extractArticleContext: %s failed: %s", args.article_url, exc)
            empty = ArticleContext.empty(args.article_url)
            return {
                **empty.to_wire(),
                "insightCount": 0,
                "highlights": [],
                "message": "Failed to extract article content",
                "error": str(exc),
            }

        state.article_contexts.append(article)
        ins = article.extracted_insights
        return {
            **article.to_wire(),
            "insightCount": article.insight_count,
            "highlights": article.highlights(),
            "message": (
                f"Extracted {len(ins.demographics)} demographics, "
                f"{len(ins.psychographics)} psychographics, "
                f"{len(ins.creator_quotes)} creator quotes "
                f"(quality: {article.quality_score:g}/5)"
            ),
        }

    async def classify_niche(args: ClassifyNicheInput) -> dict[str, Any]:
        niche = await models.structured_gateway.generate_structured(
            "Classify this creator's niche and determine audience constraints.\n\n"
            f"PROFILE DATA:\n{args.profile_summary}\n\n"
            f"CONTENT THEMES: {', '.join(args.content_themes)}\n"
            f"HASHTAGS: {', '.join(args.hashtags)}\n\n"
            "List the audiences that do NOT fit this niche as unlikelySegments, "
            "including locations the creator has no connection to.",
            NicheClassification,
        )
        state.niche_classification = niche
        return {
            **niche.to_wire(),
            "message": (
                f"Classified as {niche.primary_niche.industry} > {niche.primary_niche.sub_niche}. "
                f"Identified {len(niche.audience_constraints.unlikely_segments)} unlikely segments."
            ),
        }

    async def find_comparable_creators(args: FindComparableInput) -> dict[str, Any]:
        known = args.similar_creators_from_expansion or []
        hint = f"\nAlready identified similar creators: {', '.join(known)}" if known else ""
        found = await searcher.search(
            f"Find 3-5 creators similar to a {args.niche}/{args.sub_niche} creator with "
            f"{args.follower_count} followers, and what is known about their audience "
            f"demographics.{hint}",
            system=(
                "You are a social media analyst. Find creators in the same niche with a "
                "similar following whose audiences are documented in interviews, press "
                "or analytics."
            ),
        )
        state.sources_analyzed += 1
        extracted = await searcher.generate_structured(
            "Extract comparable creator data from this research. Only include "
            f"audiences with actual evidence.\n\n{found.text}",
            ComparableCreators,
        )
        state.comparable_creators = list(extracted.comparable_creators)
        return {
            "creators": [c.to_wire() for c in extracted.comparable_creators],
            "message": (
                f"Found {len(extracted.comparable_creators)} comparable creators "
                "with audience data"
            ),
            "audienceTemplates": [
                audience
                for creator in extracted.comparable_creators
                for audience in creator.known_audiences
            ],
        }

    async def generate_evidence_icps(args: GenerateEvidenceICPsInput) -> dict[str, Any]:
        articles = _parse_article_insights(args.article_insights) or state.article_contexts
        sections = [
            f"PROFILE CONTEXT:\n{args.profile_context}",
            f"NICHE CLASSIFICATION:\n{args.niche_context}",
        ]
        if articles:
            sections.append(_article_section(articles))
        if args.comparable_audiences:
            sections.append(
                "AUDIENCE TEMPLATES FROM SIMILAR CREATORS:\n" + "\n".join(args.comparable_audiences)
            )
        sections.append(
            "FORBIDDEN SEGMENTS (DO NOT GENERATE THESE):\n" + "\n".join(args.unlikely_segments)
        )
        generated = await models.structured_gateway.generate_structured(
            "Generate evidence-based ICP segments for this creator. Every segment "
            "must cite primary sources and carry a 0-5 evidence score; article "
            "evidence outranks inference.\n\n" + "\n\n".join(sections),
            EvidenceBasedICPSegments,
        )
        segments = generated.icp_segments
        scores = [s.evidence.score or 0 for s in segments]
        return {
            "icpSegments": [s.to_wire() for s in segments],
            "segmentCount": len(segments),
            "averageConfidenceScore": sum(scores) / len(scores) if scores else 0,
            "articleEvidenceUsed": bool(articles),
        }

    async def validate_icps(args: ValidateICPsInput) -> dict[str, Any]:
        candidates = json.loads(args.icp_segments)
        if not isinstance(candidates, list):
            raise ValueError("icpSegments must be a JSON array")
        constraints = SegmentConstraints.from_audience(
            _audience_constraints(json.loads(args.niche_constraints), state),
            unlikely_segments=args.unlikely_segments or None,
        )
        result = validator.validate(candidates, constraints)
        state.validation = result
        state.excluded_segments = list(result.rejected)
        logger.info(
            "validateICPs: %d accepted, %d rejected", len(result.accepted), len(result.rejected)
        )
        return result.to_dict()

    tools = [
        Tool(
            name=EvidenceTool.EXPAND_URLS,
            description=(
                "Discover related URLs: other platforms, website, collaborators, similar "
                "creators, and articles or interviews about the creator."
            ),
            input_model=ExpandUrlsInput,
            execute=expand_urls,
            default_output={"discoveredUrls": {}, "articlesToProcess": []},
        ),
        Tool(
            name=EvidenceTool.DEEP_RESEARCH,
            description=(
                "Research the profile with evidence extraction: hashtags, collaborators, "
                "geography signals."
            ),
            input_model=DeepResearchInput,
            execute=deep_research,
            default_output={"hashtags": [], "collaborators": [], "geographySignals": []},
        ),
        Tool(
            name=EvidenceTool.EXTRACT_ARTICLE_CONTEXT,
            description=(
                "Extract audience insights from an article, interview or press piece "
                "about the creator. Call once per article URL."
            ),
            input_model=ExtractArticleInput,
            execute=extract_article_context,
            default_output={"qualityScore": 0, "insightCount": 0, "highlights": []},
        ),
        Tool(
            name=EvidenceTool.CLASSIFY_NICHE,
            description=(
                "Classify the creator's niche and determine audience constraints "
                "including UNLIKELY segments."
            ),
            input_model=ClassifyNicheInput,
            execute=classify_niche,
            default_output={"audienceConstraints": AudienceConstraints().to_wire()},
        ),
    ]
    if state.depth is not ResearchDepth.QUICK:
        tools.append(
            Tool(
                name=EvidenceTool.FIND_COMPARABLE_CREATORS,
                description=(
                    "Find similar creators and their known audiences to use as templates "
                    "for ICP generation."
                ),
                input_model=FindComparableInput,
                execute=find_comparable_creators,
                default_output={"creators": [], "audienceTemplates": []},
            )
        )
    tools.extend(
        [
            Tool(
                name=EvidenceTool.GENERATE_EVIDENCE_BASED_ICPS,
                description=(
                    "Generate ICPs with MANDATORY evidence citations, including article "
                    "insights."
                ),
                input_model=GenerateEvidenceICPsInput,
                execute=generate_evidence_icps,
                default_output={"icpSegments": [], "segmentCount": 0},
            ),
            Tool(
                name=EvidenceTool.VALIDATE_ICPS,
                description=(
                    "Validate ICPs against evidence and niche constraints. Rejects "
                    "low-confidence or contradictory segments."
                ),
                input_model=ValidateICPsInput,
                execute=validate_icps,
                default_output=ValidationResult().to_dict(),
            ),
        ]
    )
    return ToolRegistry(tools)


# ===================================================================== #
#  Run                                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class EvidenceRequest:
    """Input for one evidence-based run.

    ``profile_urls[0]`` is the primary profile; the rest are offered to the
    model as additional research URLs.
    """

    profile_urls: tuple[str, ...]
    article_urls: tuple[str, ...] = ()
    creator_name: str | None = None
    research_depth: ResearchDepth = ResearchDepth.STANDARD

    def __post_init__(self) -> None:
        if not self.profile_urls:
            raise ValueError("At least one profile URL is required")


@dataclass
class EvidenceOutcome:
    run: RunResult
    state: ResearchState

    @property
    def completed(self) -> bool:
        return self.run.completed

    @property
    def result(self) -> EvidenceBasedICPResult | None:
        """Final result, or ``None`` when validation never ran."""
        if self.state.validation is None:
            return None
        return self.state.build_result()

    def to_dict(self) -> dict[str, Any]:
        result = self.result
        return {
            "completed": self.completed,
            "stopReason": self.run.stop_reason.value,
            "steps": self.run.steps_completed,
            "result": result.to_wire() if result is not None else None,
        }


async def run_evidence_icp(
    models: PipelineModels,
    request: EvidenceRequest,
    config: StepLoopConfig | None = None,
    research: ResearchConfig | None = None,
    channel: StepChannel | None = None,
    cancel_event: asyncio.Event | None = None,
) -> EvidenceOutcome:
    """Generate validated, evidence-backed ICP segments for a profile.

    Raises
    ------
    UnsupportedPlatformError, HandleExtractionError
        If the primary profile URL cannot be parsed.
    """
    research = research or ResearchConfig()
    primary_url = request.profile_urls[0]
    platform, handle = parse_profile_url(primary_url)
    state = ResearchState(
        primary_url=primary_url,
        handle=handle,
        platform=platform,
        depth=request.research_depth,
        article_urls=filter_article_urls(request.article_urls, research.max_article_urls),
    )
    terminal = EvidenceTool.VALIDATE_ICPS.value
    controller = StepLoopController(
        models.agent,
        build_evidence_tools(state, models, research),
        stop_conditions=[tool_called(terminal)],
        tool_choice_policy=required_until(terminal),
        config=config or DEFAULT_LOOP,
        terminal_tool=terminal,
        channel=channel,
        pipeline="social-icp-v2",
    )

    prompt = f"Generate evidence-based ICP segments for {primary_url}."
    if request.creator_name:
        prompt += f" Creator name: {request.creator_name}."
    if len(request.profile_urls) > 1:
        prompt += " Additional URLs: " + ", ".join(request.profile_urls[1:])
    logger.info(
        "Evidence ICP: @%s on %s, depth=%s, %d article(s)",
        handle,
        platform.value,
        state.depth.value,
        len(state.article_urls),
    )
    run = await controller.run(
        prompts.evidence_system(
            primary_url, platform.value, handle, state.depth, state.article_urls
        ),
        prompt,
        cancel_event=cancel_event,
    )
    return EvidenceOutcome(run=run, state=state)
