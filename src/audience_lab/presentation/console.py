"""Rich console rendering of pipeline outcomes.

:class:`ResultConsole` prints the human-readable view the CLI shows when
``--stream`` is not given.  Rendering only; every method reads the
outcome objects the pipelines return.
"""

from __future__ import annotations

import sys
from typing import Any

from rich.console import Console as RichConsole
from rich.table import Table as RichTable

from audience_lab.domain.enums import JourneyPhase
from audience_lab.pipelines.simulation import SimulationOutcome
from audience_lab.pipelines.social_icp import SocialICPOutcome
from audience_lab.pipelines.social_icp_v2 import EvidenceOutcome
from audience_lab.schemas.brand import PipelineResult
from audience_lab.services.loop import RunResult

_SCORE_COLOURS = ((4.0, "green"), (3.0, "yellow"))


def _score_colour(score: float | None) -> str:
    for floor, colour in _SCORE_COLOURS:
        if score is not None and score >= floor:
            return colour
    return "red"


class ResultConsole:
    """Console presentation for pipeline outcomes.

    Parameters
    ----------
    file:
        Output stream.  Defaults to ``sys.stdout``.
    """

    def __init__(self, file: Any = None) -> None:
        self._console = RichConsole(file=file or sys.stdout)

    # -- shared --------------------------------------------------------------

    def print_run(self, run: RunResult) -> None:
        """One table row per step: tools called and their status."""
        table = RichTable(
            title=f"Run {run.run_id or '-'}: {run.stop_reason.value}",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Step", justify="right")
        table.add_column("Tool")
        table.add_column("Status", justify="center")

        for step in run.history:
            if not step.invocations:
                table.add_row(str(step.index), "[dim](no tool calls)[/dim]", "")
            for inv in step.invocations:
                colour = "red" if inv.failed else "green"
                table.add_row(
                    str(step.index), inv.tool_name, f"[{colour}]{inv.status.value}[/{colour}]"
                )

        self._console.print()
        self._console.print(table)
        self._console.print(
            f"  [dim]completed:[/dim] {run.completed}  "
            f"[dim]elapsed:[/dim] {run.elapsed_seconds:.1f}s"
        )

    # -- pipelines -----------------------------------------------------------

    def print_simulation(self, outcome: SimulationOutcome) -> None:
        self.print_run(outcome.run)
        ctx = outcome.context
        table = RichTable(title="Journey", show_header=True, header_style="bold cyan")
        table.add_column("Phase", style="bold")
        table.add_column("Done", justify="center")
        for phase in JourneyPhase:
            done = phase in ctx.phases.completed
            table.add_row(phase.value, "[green]yes[/green]" if done else "[red]no[/red]")
        self._console.print(table)

        for label, name in (
            ("Products", "specific_products"),
            ("Comparisons", "comparisons_explored"),
            ("Price ranges", "price_ranges_found"),
            ("Queries", "previous_queries"),
        ):
            values = ctx.unique(name)
            if values:
                self._console.print(f"  [dim]{label}:[/dim] {', '.join(values)}")
        if ctx.emerging_preference:
            self._console.print(f"  [dim]Preference:[/dim] {ctx.emerging_preference}")
        self._console.print()

    def print_social_icp(self, outcome: SocialICPOutcome) -> None:
        self.print_run(outcome.run)
        result = outcome.result
        if result is None:
            self._console.print("[red]No ICP segments were generated.[/red]")
            return
        table = RichTable(
            title=f"{result.profile_analyzed} ({result.platform}, {result.total_followers})",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Segment", style="bold")
        table.add_column("Size", justify="right")
        table.add_column("Why they follow")
        for seg in result.icp_segments:
            table.add_row(seg.segment_name, seg.estimated_segment_size, seg.behaviors.follow_reason)
        self._console.print(table)
        self._console.print()

    def print_evidence(self, outcome: EvidenceOutcome) -> None:
        self.print_run(outcome.run)
        result = outcome.result
        if result is None:
            self._console.print("[red]Segments were never validated.[/red]")
            return

        table = RichTable(
            title=f"{result.profile_analyzed} ({result.platform}): accepted segments",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Segment", style="bold")
        table.add_column("Score", justify="right")
        table.add_column("Confidence", justify="center")
        table.add_column("Sources", justify="right")
        for seg in result.icp_segments:
            score = seg.evidence.score
            colour = _score_colour(score)
            table.add_row(
                seg.segment_name,
                f"[{colour}]{score if score is not None else '-'}[/{colour}]",
                seg.evidence.confidence_level.value,
                str(len(seg.evidence.primary_sources)),
            )
        self._console.print(table)

        if result.excluded_segments:
            excluded = RichTable(title="Excluded", show_header=True, header_style="bold red")
            excluded.add_column("Segment", style="bold")
            excluded.add_column("Reason")
            for seg in result.excluded_segments:
                excluded.add_row(seg.segment_name, seg.rejection_reason)
            self._console.print(excluded)

        meta = result.research_metadata
        self._console.print(
            f"  [dim]depth:[/dim] {meta.research_depth.value}  "
            f"[dim]sources:[/dim] {meta.sources_analyzed}  "
            f"[dim]comparable creators:[/dim] {meta.comparable_creators_used}"
        )
        self._console.print()

    def print_brand(self, result: PipelineResult) -> None:
        table = RichTable(title=f"Brand: {result.url}", show_header=True, header_style="bold cyan")
        table.add_column("Topic", style="bold")
        table.add_column("ICP")
        table.add_column("Discovery")
        table.add_column("Consideration")
        table.add_column("Activation")
        for pairing in result.pairings:
            q = pairing.queries
            table.add_row(pairing.topic, pairing.icp, q.discovery, q.consideration, q.activation)
        self._console.print()
        self._console.print(table)
        self._console.print(
            f"  [dim]{len(result.topics)} topics x {len(result.icps)} ICPs = "
            f"{len(result.pairings)} pairings[/dim]"
        )
        self._console.print()
