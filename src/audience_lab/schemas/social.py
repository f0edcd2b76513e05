"""Schemas for social-profile audience research.

Structured outputs requested from the model (profile data, audience
analysis, niche classification, ICP segments) and the result envelopes the
social-ICP pipelines hand back to callers.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator

from audience_lab.domain.enums import ConfidenceLevel, EvidenceType, ResearchDepth

from .common import WireModel

EngagementStyle = Literal["lurker", "liker", "commenter", "sharer", "superfan"]
PurchaseInfluence = Literal["high", "medium", "low"]
ArticleSourceType = Literal["interview", "press", "blog", "podcast", "research", "other"]
ArticleInsightType = Literal[
    "demographic", "psychographic", "behavioral", "brand_affinity", "niche_signal"
]


# ===================================================================== #
#  Profile research                                                      #
# ===================================================================== #

class ProfileLookup(WireModel):
    """Profile facts compiled from a web search."""

    handle: str
    platform: str
    bio: str | None = None
    follower_count: str | None = None
    content_themes: list[str] = Field(default_factory=list)
    recent_content: str | None = None
    brand_collaborations: list[str] = Field(default_factory=list)
    content_style: str | None = None
    notable_info: str | None = None


class AudienceSignals(WireModel):
    likely_demographics: str
    interest_clusters: list[str] = Field(default_factory=list)
    motivations_to_follow: list[str] = Field(default_factory=list)
    purchase_behaviors: list[str] = Field(default_factory=list)


class AudienceAnalysis(WireModel):
    """Inferred audience characteristics for a profile."""

    content_tone: str
    primary_appeal: str
    audience_signals: AudienceSignals
    segment_opportunities: list[str] = Field(default_factory=list)


class Hashtag(WireModel):
    tag: str
    frequency: str = Field(description="high, medium or low")
    category: str = Field(description="niche, location, trending or community")


class Collaborator(WireModel):
    handle: str
    platform: str | None = None
    relationship: str = Field(description="featured, mentioned or tagged")


class EnhancedProfile(WireModel):
    """Profile data with the signals evidence is later drawn from."""

    handle: str
    platform: str
    bio: str | None = None
    follower_count: str | None = None
    content_themes: list[str] = Field(default_factory=list)
    recent_content_summary: str | None = None
    brand_mentions: list[str] = Field(default_factory=list)
    content_style: str | None = None
    hashtags: list[Hashtag] = Field(default_factory=list)
    collaborators: list[Collaborator] = Field(default_factory=list)
    geography_signals: list[str] = Field(default_factory=list)


# ===================================================================== #
#  URL expansion                                                         #
# ===================================================================== #

class PlatformLink(WireModel):
    platform: str
    url: str
    source: str = Field(description='Where the link was found, e.g. "bio link"')


class CollaboratorLink(WireModel):
    name: str
    url: str | None = None
    relationship: str


class SimilarCreatorLink(WireModel):
    name: str
    url: str
    similarity: str


class DiscoveredUrls(WireModel):
    other_platforms: list[PlatformLink] = Field(default_factory=list)
    website: str | None = None
    linktree: str | None = None
    podcast_appearances: list[str] = Field(default_factory=list)
    interviews: list[str] = Field(default_factory=list)
    collaborators: list[CollaboratorLink] = Field(default_factory=list)
    similar_creators: list[SimilarCreatorLink] = Field(default_factory=list)


class UrlExpansion(WireModel):
    """Everything discovered around a primary profile URL."""

    primary_url: str
    discovered_urls: DiscoveredUrls = Field(default_factory=DiscoveredUrls)

    def article_candidates(self) -> list[str]:
        """Interview and podcast URLs, in that order, blanks dropped."""
        found = [*self.discovered_urls.interviews, *self.discovered_urls.podcast_appearances]
        return [url for url in found if url]


# ===================================================================== #
#  Article context                                                       #
# ===================================================================== #

class ArticleInsight(WireModel):
    insight: str
    confidence: ConfidenceLevel
    quote: str | None = None
    insight_type: ArticleInsightType


class ExtractedInsights(WireModel):
    demographics: list[ArticleInsight] = Field(default_factory=list)
    psychographics: list[ArticleInsight] = Field(default_factory=list)
    behaviorals: list[ArticleInsight] = Field(default_factory=list)
    brand_mentions: list[str] = Field(default_factory=list)
    niche_signals: list[str] = Field(default_factory=list)
    creator_quotes: list[str] = Field(default_factory=list)
    geography_signals: list[str] = Field(default_factory=list)


class ArticleContext(WireModel):
    """Audience insights pulled from press, interviews or podcasts."""

    source_url: str
    source_title: str | None = None
    source_type: ArticleSourceType = "other"
    publication_date: str | None = None
    extracted_insights: ExtractedInsights = Field(default_factory=ExtractedInsights)
    quality_score: float = Field(0, ge=0, le=5)

    @classmethod
    def empty(cls, url: str) -> ArticleContext:
        return cls(source_url=url)

    @property
    def insight_count(self) -> int:
        ins = self.extracted_insights
        return len(ins.demographics) + len(ins.psychographics) + len(ins.behaviorals)

    def highlights(self) -> list[str]:
        ins = self.extracted_insights
        picks = [*ins.creator_quotes[:2], *(d.insight for d in ins.demographics[:2])]
        return picks[:3]


# ===================================================================== #
#  Niche classification                                                  #
# ===================================================================== #

class PrimaryNiche(WireModel):
    industry: str
    sub_niche: str
    specific_genre: str | None = None


class NicheSignal(WireModel):
    signal: str
    source: str
    confidence: ConfidenceLevel


class AudienceConstraints(WireModel):
    """What the creator's audience plausibly is, and is not."""

    likely_age_range: str = ""
    likely_gender_split: str = ""
    likely_geography: list[str] = Field(default_factory=list)
    likely_interests: list[str] = Field(default_factory=list)
    unlikely_segments: list[str] = Field(default_factory=list)


class NicheClassification(WireModel):
    primary_niche: PrimaryNiche
    niche_evidence: list[NicheSignal] = Field(default_factory=list)
    audience_constraints: AudienceConstraints = Field(default_factory=AudienceConstraints)


class ComparableCreator(WireModel):
    name: str
    handle: str
    platform: str
    follower_count: str
    similarity: str
    known_audiences: list[str] = Field(default_factory=list)
    audience_evidence: str


class ComparableCreators(WireModel):
    comparable_creators: list[ComparableCreator] = Field(default_factory=list)


# ===================================================================== #
#  ICP segments                                                          #
# ===================================================================== #

class Psychographics(WireModel):
    values: list[str] = Field(default_factory=list)
    aspirations: list[str] = Field(default_factory=list)
    pain_points: list[str] = Field(default_factory=list)
    lifestyle: str = ""


class Behaviors(WireModel):
    follow_reason: str
    engagement_style: EngagementStyle
    purchase_influence: PurchaseInfluence
    content_preferences: list[str] = Field(default_factory=list)


class Demographics(WireModel):
    age_range: str
    gender: str
    occupation: str | None = None


class ICPSegment(WireModel):
    """A follower segment without evidence tracking."""

    segment_name: str
    persona_description: str
    demographics: Demographics
    psychographics: Psychographics = Field(default_factory=Psychographics)
    behaviors: Behaviors
    brand_affinities: list[str] = Field(default_factory=list)
    estimated_segment_size: str


class ICPSegments(WireModel):
    icp_segments: list[ICPSegment] = Field(min_length=3, max_length=6)


class EvidenceSource(WireModel):
    type: EvidenceType
    detail: str
    source: str


class SegmentEvidence(WireModel):
    primary_sources: list[EvidenceSource] = Field(default_factory=list)
    confidence_level: ConfidenceLevel = ConfidenceLevel.LOW
    confidence_reason: str = ""
    score: float | None = Field(None, ge=0, le=5)


class GeoDemographics(Demographics):
    geography: str | None = None


class EvidenceBasedICPSegment(WireModel):
    """A follower segment that cites the evidence it rests on."""

    segment_name: str
    persona_description: str
    evidence: SegmentEvidence = Field(default_factory=SegmentEvidence)
    demographics: GeoDemographics
    psychographics: Psychographics = Field(default_factory=Psychographics)
    behaviors: Behaviors
    brand_affinities: list[str] = Field(default_factory=list)
    estimated_segment_size: str

    @field_validator("evidence", mode="before")
    @classmethod
    def _null_evidence(cls, value: object) -> object:
        return SegmentEvidence() if value is None else value


class EvidenceBasedICPSegments(WireModel):
    icp_segments: list[EvidenceBasedICPSegment] = Field(min_length=2, max_length=6)


class ExcludedSegment(WireModel):
    """A rejected segment and why.  ``score`` is set for score-floor rejections."""

    segment_name: str
    rejection_reason: str
    score: float | None = None


# ===================================================================== #
#  Result envelopes                                                      #
# ===================================================================== #

class SocialProfileICPResult(WireModel):
    profile_analyzed: str
    platform: str
    total_followers: str
    icp_segments: list[ICPSegment]


class ResearchMetadata(WireModel):
    research_depth: ResearchDepth
    sources_analyzed: int
    comparable_creators_used: int
    generated_at: str


class EvidenceBasedICPResult(WireModel):
    profile_analyzed: str
    platform: str
    total_followers: str
    url_expansion: UrlExpansion | None = None
    niche_classification: NicheClassification | None = None
    icp_segments: list[EvidenceBasedICPSegment] = Field(default_factory=list)
    excluded_segments: list[ExcludedSegment] = Field(default_factory=list)
    research_metadata: ResearchMetadata
