"""Tests for the rule-based evidence validator."""

from __future__ import annotations

import pytest

from audience_lab.schemas.social import AudienceConstraints, EvidenceBasedICPSegment
from audience_lab.services.evidence import EvidenceValidator, SegmentConstraints
from audience_lab.testing import segment_payload


@pytest.fixture
def validator() -> EvidenceValidator:
    return EvidenceValidator()


@pytest.fixture
def constraints() -> SegmentConstraints:
    return SegmentConstraints(unlikely_segments=("Retirees",), likely_geography=("USA",))


class TestScoreFloor:

    def test_low_score_rejected_without_other_issues(
        self, validator: EvidenceValidator
    ) -> None:
        result = validator.validate([segment_payload(score=2)], SegmentConstraints())
        assert result.accepted == ()
        assert len(result.rejected) == 1
        excluded = result.rejected[0]
        assert excluded.rejection_reason == (
            "Evidence score too low (2/5). Minimum required: 3."
        )
        assert excluded.score == 2

    def test_missing_score_rejected(self, validator: EvidenceValidator) -> None:
        result = validator.validate([segment_payload(score=None)], SegmentConstraints())
        assert result.rejected[0].rejection_reason.startswith("Evidence score too low (0/5)")
        assert result.rejected[0].score is None

    def test_boundary_score_accepted(self, validator: EvidenceValidator) -> None:
        result = validator.validate([segment_payload(score=3)], SegmentConstraints())
        assert len(result.accepted) == 1

    def test_score_rule_wins_over_denylist(
        self, validator: EvidenceValidator, constraints: SegmentConstraints
    ) -> None:
        seg = segment_payload(name="Berlin Retirees", score=1)
        result = validator.validate([seg], constraints)
        reason = result.rejected[0].rejection_reason
        assert "Evidence score" in reason
        assert "unlikely" not in reason


class TestDenylist:

    def test_case_insensitive_match_in_description(
        self, validator: EvidenceValidator, constraints: SegmentConstraints
    ) -> None:
        seg = segment_payload(name="Quiet Readers", description="mostly RETIREES reading along")
        result = validator.validate([seg], constraints)
        excluded = result.rejected[0]
        assert excluded.rejection_reason.startswith("Matches unlikely segment pattern.")
        assert excluded.score is None


class TestGeography:

    def test_no_location_marker_passes(self, validator: EvidenceValidator) -> None:
        seg = segment_payload(
            name="Bedroom Producers",
            description="Aspiring music producers who use Ableton",
        )
        result = validator.validate([seg], SegmentConstraints(likely_geography=("USA",)))
        assert len(result.accepted) == 1

    def test_marker_outside_likely_geography_rejected(
        self, validator: EvidenceValidator, constraints: SegmentConstraints
    ) -> None:
        seg = segment_payload(name="Tokyo Foodies", description="Street food fans")
        result = validator.validate([seg], constraints)
        assert result.rejected[0].rejection_reason == (
            "Location mismatch. Creator's likely geography: USA. No evidence for this location."
        )

    def test_marker_with_matching_geography_passes(self, validator: EvidenceValidator) -> None:
        seg = segment_payload(name="London Runners", geography="UK, London")
        result = validator.validate([seg], SegmentConstraints(likely_geography=("UK",)))
        assert len(result.accepted) == 1

    def test_marker_ignored_when_geography_unknown(self, validator: EvidenceValidator) -> None:
        seg = segment_payload(name="Paris Stylists")
        assert validator.check(EvidenceBasedICPSegment.model_validate(seg), SegmentConstraints()) is None


class TestValidationResult:

    def test_partition_keeps_input_order(
        self, validator: EvidenceValidator, constraints: SegmentConstraints
    ) -> None:
        segs = [
            segment_payload(name="A"),
            segment_payload(name="B", score=1),
            segment_payload(name="C"),
            segment_payload(name="D Retirees"),
        ]
        result = validator.validate(segs, constraints)
        assert [s.segment_name for s in result.accepted] == ["A", "C"]
        assert [s.segment_name for s in result.rejected] == ["B", "D Retirees"]
        data = result.to_dict()
        assert data["validCount"] == 2
        assert data["excludedCount"] == 2
        assert data["message"] == (
            "Validated 2 segments, rejected 2 for insufficient evidence or constraint violations"
        )

    def test_deterministic_bytes(
        self, validator: EvidenceValidator, constraints: SegmentConstraints
    ) -> None:
        segs = [
            segment_payload(name="Tokyo Foodies"),
            segment_payload(name="Home Bakers"),
            segment_payload(name="Low", score=0.5),
        ]
        first = validator.validate(segs, constraints).to_json()
        second = EvidenceValidator().validate(segs, constraints).to_json()
        assert first == second

    def test_custom_minimum(self) -> None:
        result = EvidenceValidator(min_score=4.5).validate(
            [segment_payload(score=4)], SegmentConstraints()
        )
        assert result.rejected[0].rejection_reason == (
            "Evidence score too low (4/5). Minimum required: 4.5."
        )


class TestSegmentConstraints:

    def test_from_audience_uses_constraint_lists(self) -> None:
        audience = AudienceConstraints(
            likely_geography=["USA", ""], unlikely_segments=["Retirees"]
        )
        built = SegmentConstraints.from_audience(audience)
        assert built == SegmentConstraints(("Retirees",), ("USA",))

    def test_explicit_unlikely_list_replaces(self) -> None:
        built = SegmentConstraints.from_audience(
            {"unlikelySegments": ["Retirees"]}, unlikely_segments=["Students"]
        )
        assert built.unlikely_segments == ("Students",)

    def test_none(self) -> None:
        assert SegmentConstraints.from_audience(None) == SegmentConstraints()


class TestMalformedCandidates:

    def test_null_evidence_falls_to_score_floor(self, validator: EvidenceValidator) -> None:
        seg = segment_payload(name="Quiet Readers")
        seg["evidence"] = None
        result = validator.validate([seg], SegmentConstraints())
        assert result.accepted == ()
        excluded = result.rejected[0]
        assert excluded.segment_name == "Quiet Readers"
        assert excluded.rejection_reason.startswith("Evidence score too low (0/5)")
        assert excluded.score is None

    def test_missing_behaviors_rejected_beside_valid_segment(
        self, validator: EvidenceValidator
    ) -> None:
        broken = segment_payload(name="Broken")
        del broken["behaviors"]
        result = validator.validate(
            [segment_payload(name="Home Bakers"), broken], SegmentConstraints()
        )
        assert [s.segment_name for s in result.accepted] == ["Home Bakers"]
        excluded = result.rejected[0]
        assert excluded.segment_name == "Broken"
        assert excluded.rejection_reason == (
            "Malformed segment. Invalid or missing fields: behaviors."
        )
        assert excluded.score is None

    def test_out_of_range_score_names_field(self, validator: EvidenceValidator) -> None:
        result = validator.validate([segment_payload(name="Loud", score=7)], SegmentConstraints())
        assert result.rejected[0].rejection_reason == (
            "Malformed segment. Invalid or missing fields: evidence.score."
        )

    def test_non_mapping_candidate_is_unnamed(self, validator: EvidenceValidator) -> None:
        result = validator.validate(["not a segment"], SegmentConstraints())
        assert result.rejected[0].segment_name == "Unnamed segment"
        assert result.to_dict()["excludedCount"] == 1
