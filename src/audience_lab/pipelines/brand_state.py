"""LangGraph state for the brand research pipeline.

Each node fills in one stage and returns only the keys it produced.

Note: no ``from __future__ import annotations`` here; LangGraph resolves the
TypedDict's hints at runtime via ``get_type_hints()``.
"""

from typing import TypedDict

from audience_lab.schemas.brand import BrandSource, Pairing


class BrandState(TypedDict, total=False):
    """State flowing through the brand research graph."""

    # -- Input
    url: str

    # -- analyze_brand
    analysis: str
    sources: list[BrandSource]

    # -- generate_topics / generate_icps
    topics: list[str]
    icps: list[str]

    # -- generate_queries
    pairings: list[Pairing]
