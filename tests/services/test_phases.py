"""Tests for the journey phase state machine."""

from __future__ import annotations

import pytest

from audience_lab.domain.enums import JourneyPhase
from audience_lab.domain.exceptions import PhaseOrderError
from audience_lab.services.phases import PhaseTracker


class TestStrictTracker:

    def test_in_order_completion(self) -> None:
        tracker = PhaseTracker()
        first = tracker.record(JourneyPhase.DISCOVERY, ["budget matters"])
        assert first.accepted and first.completed
        assert first.next_phase == "consideration"
        assert tracker.current is JourneyPhase.CONSIDERATION

        tracker.record("consideration")
        last = tracker.record("activation")
        assert last.next_phase == "complete"
        assert last.all_phases_complete
        assert tracker.current is None

    def test_skipping_ahead_is_rejected(self) -> None:
        tracker = PhaseTracker()
        record = tracker.record(JourneyPhase.ACTIVATION)
        assert not record.accepted
        assert not record.completed
        assert record.next_phase == "discovery"
        assert tracker.completed == frozenset()

    def test_check_raises(self) -> None:
        tracker = PhaseTracker()
        with pytest.raises(PhaseOrderError) as exc_info:
            tracker.check(JourneyPhase.CONSIDERATION)
        assert exc_info.value.expected == "discovery"

    def test_re_recording_is_noop(self) -> None:
        tracker = PhaseTracker()
        tracker.record("discovery")
        again = tracker.record("discovery")
        assert again.accepted
        assert tracker.completed == frozenset({JourneyPhase.DISCOVERY})

    def test_record_dict_shape(self) -> None:
        data = PhaseTracker().record("discovery", ["a", "b"]).to_dict()
        assert data == {
            "phase": "discovery",
            "completed": True,
            "insightsGathered": ["a", "b"],
            "nextPhase": "consideration",
            "allPhasesComplete": False,
            "accepted": True,
            "message": "Discovery phase recorded.",
        }


class TestLenientTracker:

    def test_any_order_accepted(self) -> None:
        tracker = PhaseTracker(strict=False)
        record = tracker.record(JourneyPhase.ACTIVATION)
        assert record.accepted
        assert not record.all_phases_complete
        assert tracker.current is JourneyPhase.DISCOVERY

    def test_unknown_phase_raises(self) -> None:
        with pytest.raises(ValueError):
            PhaseTracker(strict=False).record("checkout")
