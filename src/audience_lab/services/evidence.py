"""Rule-based validation of model-proposed audience segments.

The :class:`EvidenceValidator` partitions candidate segments into accepted
and rejected.  Rules run in a fixed order and the first one that fires
decides the outcome:

1. **score floor** -- missing score, or score below the minimum;
2. **unlikely segment** -- name or description contains a denylisted
   phrase (case-insensitive);
3. **geography** -- the segment names a specific city, the creator's likely
   geography is known, and none of it appears in the segment text;
4. otherwise the segment is accepted.

A candidate that does not parse as a segment is rejected with the fields
at fault and no score.

Validation is pure: no model calls, no I/O, and identical inputs always
serialise to identical bytes.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from audience_lab.schemas.social import (
    AudienceConstraints,
    EvidenceBasedICPSegment,
    ExcludedSegment,
)

DEFAULT_MIN_SCORE = 3.0
DEFAULT_LOCATION_MARKERS = ("berlin", "london", "paris", "tokyo", "sydney", "mumbai")


@dataclass(frozen=True)
class SegmentConstraints:
    """Constraints a segment must respect to be accepted."""

    unlikely_segments: tuple[str, ...] = ()
    likely_geography: tuple[str, ...] = ()

    @classmethod
    def from_audience(
        cls,
        constraints: AudienceConstraints | Mapping[str, Any] | None,
        unlikely_segments: Iterable[str] | None = None,
    ) -> SegmentConstraints:
        """Build from niche audience constraints.

        An explicit *unlikely_segments* list replaces the one carried by
        *constraints*.
        """
        if constraints is None:
            parsed = AudienceConstraints()
        elif isinstance(constraints, AudienceConstraints):
            parsed = constraints
        else:
            parsed = AudienceConstraints.model_validate(constraints)
        unlikely = parsed.unlikely_segments if unlikely_segments is None else unlikely_segments
        return cls(
            unlikely_segments=tuple(s for s in unlikely if s),
            likely_geography=tuple(g for g in parsed.likely_geography if g),
        )


@dataclass(frozen=True)
class ValidationResult:
    """Accepted/rejected partition, each in input order."""

    accepted: tuple[EvidenceBasedICPSegment, ...] = ()
    rejected: tuple[ExcludedSegment, ...] = ()

    @property
    def message(self) -> str:
        return (
            f"Validated {len(self.accepted)} segments, rejected {len(self.rejected)} "
            "for insufficient evidence or constraint violations"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "validSegments": [s.to_wire() for s in self.accepted],
            "validCount": len(self.accepted),
            "excludedSegments": [s.to_wire() for s in self.rejected],
            "excludedCount": len(self.rejected),
            "message": self.message,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=False)


def _format_score(score: float | None) -> str:
    if score is None:
        return "0"
    return str(int(score)) if float(score).is_integer() else str(score)


def _malformed(candidate: Any, exc: ValidationError) -> ExcludedSegment:
    """Exclusion for a candidate that does not parse as a segment."""
    name = "Unnamed segment"
    if isinstance(candidate, Mapping):
        raw = candidate.get("segmentName", candidate.get("segment_name"))
        if isinstance(raw, str) and raw.strip():
            name = raw
    fields = sorted({".".join(str(p) for p in err["loc"]) or "segment" for err in exc.errors()})
    return ExcludedSegment(
        segment_name=name,
        rejection_reason=f"Malformed segment. Invalid or missing fields: {', '.join(fields)}.",
    )


class EvidenceValidator:
    """Partition candidate segments by evidence strength and constraints.

    Parameters
    ----------
    min_score:
        Segments whose evidence score is missing or below this are rejected.
    location_markers:
        City names that make a segment location-specific.
    """

    def __init__(
        self,
        min_score: float = DEFAULT_MIN_SCORE,
        location_markers: Sequence[str] = DEFAULT_LOCATION_MARKERS,
    ) -> None:
        self._min_score = min_score
        self._location_re = re.compile(
            "|".join(re.escape(m) for m in location_markers), re.IGNORECASE
        )

    def validate(
        self,
        candidates: Iterable[EvidenceBasedICPSegment | Mapping[str, Any]],
        constraints: SegmentConstraints,
    ) -> ValidationResult:
        accepted: list[EvidenceBasedICPSegment] = []
        rejected: list[ExcludedSegment] = []
        for candidate in candidates:
            if isinstance(candidate, EvidenceBasedICPSegment):
                segment = candidate
            else:
                try:
                    segment = EvidenceBasedICPSegment.model_validate(candidate)
                except ValidationError as exc:
                    rejected.append(_malformed(candidate, exc))
                    continue
            exclusion = self.check(segment, constraints)
            if exclusion is None:
                accepted.append(segment)
            else:
                rejected.append(exclusion)
        return ValidationResult(accepted=tuple(accepted), rejected=tuple(rejected))

    def check(
        self,
        segment: EvidenceBasedICPSegment,
        constraints: SegmentConstraints,
    ) -> ExcludedSegment | None:
        """Return the exclusion for *segment*, or ``None`` if it passes."""
        score = segment.evidence.score
        if score is None or score < self._min_score:
            return ExcludedSegment(
                segment_name=segment.segment_name,
                rejection_reason=(
                    f"Evidence score too low ({_format_score(score)}/5). "
                    f"Minimum required: {_format_score(self._min_score)}."
                ),
                score=score,
            )

        name = segment.segment_name.lower()
        description = segment.persona_description.lower()
        for phrase in constraints.unlikely_segments:
            needle = phrase.lower()
            if needle in name or needle in description:
                return ExcludedSegment(
                    segment_name=segment.segment_name,
                    rejection_reason=(
                        "Matches unlikely segment pattern. "
                        "This audience doesn't fit the creator's niche."
                    ),
                )

        text = " ".join(
            (
                segment.segment_name,
                segment.persona_description,
                segment.demographics.geography or "",
            )
        )
        if self._location_re.search(text) and constraints.likely_geography:
            lowered = text.lower()
            if not any(geo.lower() in lowered for geo in constraints.likely_geography):
                return ExcludedSegment(
                    segment_name=segment.segment_name,
                    rejection_reason=(
                        "Location mismatch. Creator's likely geography: "
                        f"{', '.join(constraints.likely_geography)}. "
                        "No evidence for this location."
                    ),
                )
        return None
