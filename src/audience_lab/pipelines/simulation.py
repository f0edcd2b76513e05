"""Persona journey simulation.

A model role-plays an ideal customer researching a purchase through three
phases (discovery, consideration, activation).  Its queries go to a
web-search-backed model; what the answers mention accumulates in a
:class:`JourneyContext` created fresh for the run.

The loop stops once activation is recorded (or after ``max_steps``), and
tool use is required on every step until then.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import Field

from audience_lab.domain.enums import JourneyPhase
from audience_lab.infrastructure.channel import StepChannel
from audience_lab.infrastructure.config import StepLoopConfig
from audience_lab.infrastructure.llm import LLMError
from audience_lab.pipelines import prompts
from audience_lab.pipelines.common import PipelineModels, utc_timestamp
from audience_lab.schemas.common import WireModel
from audience_lab.schemas.simulation import ExtractedEntities
from audience_lab.services.loop import RunResult, StepLoopController
from audience_lab.services.phases import PhaseTracker
from audience_lab.services.policies import phase_recorded, required_until_condition
from audience_lab.services.tools import Tool, ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_LOOP = StepLoopConfig(max_steps=15, wall_clock_seconds=120.0)


class SimulationTool(str, Enum):
    SEND_QUERY = "sendQuery"
    EXTRACT_ENTITIES = "extractEntities"
    RECORD_PHASE_COMPLETION = "recordPhaseCompletion"


# ===================================================================== #
#  Accumulator                                                           #
# ===================================================================== #

_LIST_FIELDS = (
    "entities_discovered",
    "comparisons_explored",
    "specific_products",
    "price_ranges_found",
    "previous_queries",
)


@dataclass
class JourneyContext:
    """What the persona has learnt so far in one run.

    List fields are append-only and may hold duplicates; use :meth:`unique`
    for a de-duplicated view.
    """

    entities_discovered: list[str] = field(default_factory=list)
    comparisons_explored: list[str] = field(default_factory=list)
    emerging_preference: str = ""
    specific_products: list[str] = field(default_factory=list)
    price_ranges_found: list[str] = field(default_factory=list)
    previous_queries: list[str] = field(default_factory=list)
    phases: PhaseTracker = field(default_factory=PhaseTracker)

    def unique(self, name: str) -> list[str]:
        """First-seen-order de-duplication of list field *name*."""
        if name not in _LIST_FIELDS:
            raise ValueError(f"{name!r} is not a list field of JourneyContext")
        return list(dict.fromkeys(getattr(self, name)))

    def fold(self, entities: ExtractedEntities) -> None:
        self.specific_products.extend(entities.products)
        self.entities_discovered.extend([*entities.products, *entities.features])
        self.comparisons_explored.extend(entities.comparisons)
        self.price_ranges_found.extend(entities.price_ranges)
        if entities.recommendations:
            self.emerging_preference = entities.recommendations[0]

    def totals(self) -> dict[str, int]:
        return {
            "totalProducts": len(self.specific_products),
            "totalComparisons": len(self.comparisons_explored),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "entitiesDiscovered": list(self.entities_discovered),
            "comparisonsExplored": list(self.comparisons_explored),
            "emergingPreference": self.emerging_preference,
            "specificProducts": list(self.specific_products),
            "priceRangesFound": list(self.price_ranges_found),
            "previousQueries": list(self.previous_queries),
            "completedPhases": [p.value for p in JourneyPhase if p in self.phases.completed],
        }


# ===================================================================== #
#  Tool inputs                                                           #
# ===================================================================== #

class SendQueryInput(WireModel):
    query: str = Field(min_length=1, description="The query to send to the AI")
    phase: JourneyPhase = Field(description="The current journey phase")


class ExtractEntitiesInput(WireModel):
    response: str = Field(description="The AI response text to analyze")
    phase: JourneyPhase = Field(description="The current journey phase")


class RecordPhaseInput(WireModel):
    phase: JourneyPhase = Field(description="The phase that is now complete")
    insights_gathered: list[str] = Field(
        default_factory=list, description="Key insights gathered during this phase"
    )


# ===================================================================== #
#  Registry factory                                                      #
# ===================================================================== #

def build_simulation_tools(
    context: JourneyContext,
    models: PipelineModels,
    include_extraction: bool = True,
) -> ToolRegistry:
    """Tools for one simulation run, closed over *context*."""

    async def send_query(args: SendQueryInput) -> dict[str, Any]:
        context.previous_queries.append(args.query)
        result = await models.research_gateway.search(
            args.query, system=prompts.search_engine_system(args.phase)
        )
        return {
            "query": args.query,
            "phase": args.phase.value,
            "response": result.text,
            "citations": [source.to_dict() for source in result.sources],
            "timestamp": utc_timestamp(),
        }

    async def extract_entities(args: ExtractEntitiesInput) -> dict[str, Any]:
        try:
            entities = await models.research_gateway.generate_structured(
                prompts.extraction_prompt(args.phase, args.response), ExtractedEntities
            )
        except LLMError as exc:
            logger.warning("extractEntities: extraction failed, continuing empty: %s", exc)
            entities = ExtractedEntities()
        else:
            context.fold(entities)
            logger.debug(
                "extractEntities: %d products, %d features, %d comparisons",
                len(entities.products),
                len(entities.features),
                len(entities.comparisons),
            )
        return {
            "phase": args.phase.value,
            "extracted": entities.to_wire(),
            "accumulatedContext": context.totals(),
        }

    async def record_phase(args: RecordPhaseInput) -> dict[str, Any]:
        return context.phases.record(args.phase, args.insights_gathered).to_dict()

    tools = [
        Tool(
            name=SimulationTool.SEND_QUERY,
            description=(
                "Send a query to the AI search engine as the persona. Use this to ask "
                "questions during your research journey."
            ),
            input_model=SendQueryInput,
            execute=send_query,
            default_output={"response": "", "citations": []},
        ),
    ]
    if include_extraction:
        tools.append(
            Tool(
                name=SimulationTool.EXTRACT_ENTITIES,
                description=(
                    "Extract key entities from an AI response to build context for "
                    "follow-up queries. Call this after each sendQuery."
                ),
                input_model=ExtractEntitiesInput,
                execute=extract_entities,
                default_output={"extracted": ExtractedEntities().to_wire()},
            )
        )
    tools.append(
        Tool(
            name=SimulationTool.RECORD_PHASE_COMPLETION,
            description=(
                "Record that a journey phase is complete. Call this once the current "
                "phase has given you enough to move on."
            ),
            input_model=RecordPhaseInput,
            execute=record_phase,
            default_output={"completed": False, "allPhasesComplete": False},
        )
    )
    return ToolRegistry(tools)


# ===================================================================== #
#  Run                                                                   #
# ===================================================================== #

@dataclass(frozen=True)
class SimulationRequest:
    persona: str
    initial_query: str

    def __post_init__(self) -> None:
        if not self.persona.strip():
            raise ValueError("ICP persona description is required")
        if not self.initial_query.strip():
            raise ValueError("Initial query is required")


@dataclass
class SimulationOutcome:
    run: RunResult
    context: JourneyContext

    @property
    def all_phases_complete(self) -> bool:
        return self.context.phases.all_complete

    @property
    def completed(self) -> bool:
        return JourneyPhase.ACTIVATION in self.context.phases.completed

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "allPhasesComplete": self.all_phases_complete,
            "stopReason": self.run.stop_reason.value,
            "steps": self.run.steps_completed,
            "context": self.context.to_dict(),
        }


async def run_simulation(
    models: PipelineModels,
    request: SimulationRequest,
    config: StepLoopConfig | None = None,
    channel: StepChannel | None = None,
    cancel_event: asyncio.Event | None = None,
    include_extraction: bool = True,
) -> SimulationOutcome:
    """Simulate *request*'s persona through the three-phase journey."""
    config = config or DEFAULT_LOOP
    context = JourneyContext(phases=PhaseTracker(strict=config.strict_phase_order))
    activation_recorded = phase_recorded(JourneyPhase.ACTIVATION)
    controller = StepLoopController(
        models.agent,
        build_simulation_tools(context, models, include_extraction=include_extraction),
        stop_conditions=[activation_recorded],
        tool_choice_policy=required_until_condition(activation_recorded),
        config=config,
        terminal_tool=SimulationTool.RECORD_PHASE_COMPLETION.value,
        terminal_condition=activation_recorded,
        channel=channel,
        pipeline="simulate",
    )
    logger.info("Simulation: starting (%d chars of persona)", len(request.persona))
    run = await controller.run(
        prompts.simulator_system(request.persona, request.initial_query),
        request.initial_query,
        cancel_event=cancel_event,
    )
    return SimulationOutcome(run=run, context=context)
