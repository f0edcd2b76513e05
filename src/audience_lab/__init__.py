"""audience-lab.

Tool-calling language-model pipelines for audience research: persona
journey simulation, social-profile ICP generation (plain and
evidence-validated) and brand topic/ICP/query derivation.
"""

__version__ = "0.1.0"

from audience_lab.pipelines import (
    PipelineModels,
    run_brand_pipeline,
    run_evidence_icp,
    run_simulation,
    run_social_icp,
)
from audience_lab.services import StepLoopController, ToolRegistry

__all__ = [
    "PipelineModels",
    "StepLoopController",
    "ToolRegistry",
    "run_brand_pipeline",
    "run_evidence_icp",
    "run_simulation",
    "run_social_icp",
]
