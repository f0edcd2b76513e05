"""Schemas for the persona journey simulation."""

from __future__ import annotations

from pydantic import Field

from .common import WireModel


class Citation(WireModel):
    url: str
    title: str


class ExtractedEntities(WireModel):
    """Entities pulled out of one search answer."""

    products: list[str] = Field(
        default_factory=list, description="Specific products or brand names mentioned"
    )
    features: list[str] = Field(
        default_factory=list, description="Features, attributes, or characteristics discussed"
    )
    comparisons: list[str] = Field(
        default_factory=list,
        description="Any comparisons made (e.g., 'German vs Japanese knives')",
    )
    recommendations: list[str] = Field(
        default_factory=list, description="Specific recommendations or suggestions"
    )
    price_ranges: list[str] = Field(
        default_factory=list, description="Price points, ranges, or budget info mentioned"
    )
