"""Pydantic schemas: structured model outputs and result envelopes."""

from .brand import BrandSource, ICPs, JourneyQueries, Pairing, PipelineResult, Topics
from .common import WireModel
from .simulation import Citation, ExtractedEntities
from .social import (
    ArticleContext,
    AudienceAnalysis,
    AudienceConstraints,
    ComparableCreator,
    ComparableCreators,
    EnhancedProfile,
    EvidenceBasedICPResult,
    EvidenceBasedICPSegment,
    EvidenceBasedICPSegments,
    ExcludedSegment,
    ICPSegment,
    ICPSegments,
    NicheClassification,
    ProfileLookup,
    ResearchMetadata,
    SegmentEvidence,
    SocialProfileICPResult,
    UrlExpansion,
)

__all__ = [
    "WireModel",
    # Brand
    "BrandSource",
    "ICPs",
    "JourneyQueries",
    "Pairing",
    "PipelineResult",
    "Topics",
    # Simulation
    "Citation",
    "ExtractedEntities",
    # Social
    "ArticleContext",
    "AudienceAnalysis",
    "AudienceConstraints",
    "ComparableCreator",
    "ComparableCreators",
    "EnhancedProfile",
    "EvidenceBasedICPResult",
    "EvidenceBasedICPSegment",
    "EvidenceBasedICPSegments",
    "ExcludedSegment",
    "ICPSegment",
    "ICPSegments",
    "NicheClassification",
    "ProfileLookup",
    "ResearchMetadata",
    "SegmentEvidence",
    "SocialProfileICPResult",
    "UrlExpansion",
]
