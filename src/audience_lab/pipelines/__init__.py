"""The four research pipelines built on the step loop and LangGraph, plus chat."""

from audience_lab.pipelines.brand import build_brand_graph, run_brand_pipeline
from audience_lab.pipelines.chat import ChatRequest, ChatTurn, collect_chat, stream_chat
from audience_lab.pipelines.common import PipelineModels
from audience_lab.pipelines.simulation import (
    JourneyContext,
    SimulationOutcome,
    SimulationRequest,
    run_simulation,
)
from audience_lab.pipelines.social_icp import (
    ProfileResearchState,
    SocialICPOutcome,
    run_social_icp,
)
from audience_lab.pipelines.social_icp_v2 import (
    EvidenceOutcome,
    EvidenceRequest,
    ResearchState,
    run_evidence_icp,
)

__all__ = [
    "PipelineModels",
    # Chat
    "ChatRequest",
    "ChatTurn",
    "collect_chat",
    "stream_chat",
    # Brand
    "build_brand_graph",
    "run_brand_pipeline",
    # Simulation
    "JourneyContext",
    "SimulationOutcome",
    "SimulationRequest",
    "run_simulation",
    # Social ICP
    "ProfileResearchState",
    "SocialICPOutcome",
    "run_social_icp",
    "EvidenceOutcome",
    "EvidenceRequest",
    "ResearchState",
    "run_evidence_icp",
]
