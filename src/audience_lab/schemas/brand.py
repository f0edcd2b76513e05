"""Schemas for the brand research pipeline."""

from __future__ import annotations

from pydantic import Field

from .common import WireModel


class Topics(WireModel):
    topics: list[str] = Field(
        min_length=5,
        max_length=5,
        description="Exactly 5 search-intent topics, each 2-4 words",
    )


class ICPs(WireModel):
    icps: list[str] = Field(
        min_length=5,
        max_length=5,
        description="Exactly 5 Ideal Customer Profiles, each 1-2 sentences",
    )


class JourneyQueries(WireModel):
    """One query per journey stage for a topic/ICP pairing."""

    discovery: str = Field(
        description="Informational, problem-aware query for early-stage exploration"
    )
    consideration: str = Field(
        description="Comparative, category-level query for mid-stage evaluation"
    )
    activation: str = Field(
        description="Action-oriented, purchase-ready query for high-intent conversion"
    )


class BrandSource(WireModel):
    type: str = "url"
    url: str


class Pairing(WireModel):
    topic: str
    icp: str
    queries: JourneyQueries


class PipelineResult(WireModel):
    url: str
    topics: list[str]
    icps: list[str]
    pairings: list[Pairing] = Field(default_factory=list)
