"""Brand research pipeline.

A linear LangGraph:

``START -> analyze_brand -> generate_topics -> generate_icps -> generate_queries -> END``

``analyze_brand`` runs one web search over the brand URL; the two generation
nodes each ask for exactly five items; ``generate_queries`` writes one
discovery/consideration/activation query set for every topic x ICP pairing,
topics in the outer loop.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from langgraph.graph import END, START, StateGraph

from audience_lab.pipelines import prompts
from audience_lab.pipelines.brand_state import BrandState
from audience_lab.pipelines.common import PipelineModels
from audience_lab.schemas.brand import (
    BrandSource,
    ICPs,
    JourneyQueries,
    Pairing,
    PipelineResult,
    Topics,
)

logger = logging.getLogger(__name__)

NodeFn = Callable[[BrandState], Awaitable[dict[str, Any]]]

NODE_ORDER = ("analyze_brand", "generate_topics", "generate_icps", "generate_queries")


# ===================================================================== #
#  Node factories                                                        #
# ===================================================================== #

def make_analyze_brand_node(models: PipelineModels) -> NodeFn:
    """Search the web for what the brand at ``state["url"]`` sells and to whom."""

    async def analyze_brand_node(state: BrandState) -> dict[str, Any]:
        url = state["url"]
        found = await models.research_gateway.search(prompts.brand_analysis_prompt(url))
        sources = [BrandSource(url=source.url) for source in found.sources]
        logger.info("analyze_brand_node: %d chars, %d sources", len(found.text), len(sources))
        return {"analysis": found.text, "sources": sources}

    return analyze_brand_node


def make_generate_topics_node(models: PipelineModels) -> NodeFn:
    async def generate_topics_node(state: BrandState) -> dict[str, Any]:
        result = await models.structured_gateway.generate_structured(
            f"Brand analysis:\n\n{state['analysis']}\n\nGenerate exactly 5 topics.",
            Topics,
            system=prompts.TOPIC_SYSTEM,
        )
        logger.debug("generate_topics_node: %s", result.topics)
        return {"topics": list(result.topics)}

    return generate_topics_node


def make_generate_icps_node(models: PipelineModels) -> NodeFn:
    async def generate_icps_node(state: BrandState) -> dict[str, Any]:
        result = await models.structured_gateway.generate_structured(
            f"Brand analysis:\n\n{state['analysis']}\n\n"
            "Generate exactly 5 Ideal Customer Profiles.",
            ICPs,
            system=prompts.ICP_SYSTEM,
        )
        logger.debug("generate_icps_node: %d ICPs", len(result.icps))
        return {"icps": list(result.icps)}

    return generate_icps_node


def make_generate_queries_node(models: PipelineModels) -> NodeFn:
    """Generate queries for every pairing, one model call each."""

    async def generate_queries_node(state: BrandState) -> dict[str, Any]:
        pairings: list[Pairing] = []
        for topic in state["topics"]:
            for icp in state["icps"]:
                queries = await models.structured_gateway.generate_structured(
                    f"Topic: {topic}\nIdeal Customer Profile: {icp}\n\n"
                    "Write one query for each journey stage.",
                    JourneyQueries,
                    system=prompts.QUERY_SYSTEM,
                )
                pairings.append(Pairing(topic=topic, icp=icp, queries=queries))
        logger.info("generate_queries_node: %d pairings", len(pairings))
        return {"pairings": pairings}

    return generate_queries_node


# ===================================================================== #
#  Graph                                                                 #
# ===================================================================== #

def build_brand_graph(models: PipelineModels) -> Any:
    """Build and compile the brand research graph.

    Returns
    -------
    CompiledStateGraph
        A compiled graph ready for ``.ainvoke({"url": ...})``.
    """
    graph = StateGraph(BrandState)
    graph.add_node("analyze_brand", make_analyze_brand_node(models))
    graph.add_node("generate_topics", make_generate_topics_node(models))
    graph.add_node("generate_icps", make_generate_icps_node(models))
    graph.add_node("generate_queries", make_generate_queries_node(models))

    graph.add_edge(START, NODE_ORDER[0])
    for upstream, downstream in zip(NODE_ORDER, NODE_ORDER[1:]):
        graph.add_edge(upstream, downstream)
    graph.add_edge(NODE_ORDER[-1], END)
    return graph.compile()


async def run_brand_pipeline(models: PipelineModels, url: str) -> PipelineResult:
    """Run the brand graph for *url* and collect its result.

    Raises
    ------
    ValueError
        If *url* is empty.
    LLMError
        If any model call fails; the pipeline has no partial result.
    """
    if not url.strip():
        raise ValueError("Brand URL is required")
    logger.info("Brand pipeline: %s", url)
    final = await build_brand_graph(models).ainvoke({"url": url})
    return PipelineResult(
        url=url,
        topics=final.get("topics", []),
        icps=final.get("icps", []),
        pairings=final.get("pairings", []),
    )
