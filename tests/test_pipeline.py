"""
End-to-end tests for the Verification Pipeline.

Scenario: a formwork crew member assigned to the level 3 deck. Telemetry is
mapped to zones, consolidated into visits and scored against the plan.
"""

from datetime import date, datetime, timedelta
from typing import Optional

import pytest

from timesheet_kernel.catalog.store import load_catalog
from timesheet_kernel.models.activity import ActivityAssignment, PlannedZone, PlannedZoneRole
from timesheet_kernel.models.config import VerificationConfig
from timesheet_kernel.models.location import Coordinates, LocationObservation
from timesheet_kernel.models.timesheet import DailyZoneTime
from timesheet_kernel.models.verification import PatternSignal, VerificationStatus
from timesheet_kernel.pipeline.runner import (
    VerificationJob,
    VerificationPipeline,
    parse_observations,
)

DAY = date(2024, 3, 4)
SHIFT_START = datetime(2024, 3, 4, 7, 0)


def _make_catalog():
    return load_catalog([
        {
            "zone_id": "l3_deck",
            "floor_id": "L3",
            "name": "Level 3 Deck",
            "category": "primary",
            "boundary": {"shape": "rectangle", "min_x": 0, "min_y": 0, "max_x": 30, "max_y": 20},
            "activity_codes": ["FRM-100"],
        },
        {
            "zone_id": "l3_laydown",
            "floor_id": "L3",
            "name": "Level 3 Laydown",
            "category": "support",
            "boundary": {
                "shape": "polygon",
                "vertices": [[30, 0], [40, 0], [40, 20], [30, 20]],
            },
        },
        {
            "zone_id": "l5_core",
            "floor_id": "L5",
            "name": "Level 5 Core",
            "category": "primary",
            "boundary": {"shape": "rectangle", "min_x": 0, "min_y": 0, "max_x": 10, "max_y": 10},
            "activity_codes": ["CON-220"],
        },
    ]).raise_for_errors()


def _make_activity() -> ActivityAssignment:
    return ActivityAssignment(
        activity_id="ACT-FRM-L3",
        planned_zones=[
            PlannedZone(zone_id="l3_deck", role=PlannedZoneRole.PRIMARY, expected_hours=7.0),
            PlannedZone(zone_id="l3_laydown", role=PlannedZoneRole.SUPPORT, expected_hours=1.0),
        ],
        planned_date=DAY,
        planned_hours=8.0,
    )


def _pings(
    start_minute: int,
    end_minute: int,
    x: float,
    y: float,
    floor_id: str,
    step: int = 2,
    worker_id: str = "w_17",
):
    return [
        LocationObservation(
            worker_id=worker_id,
            timestamp=SHIFT_START + timedelta(minutes=m),
            coordinates=Coordinates(x=x, y=y, z=int(floor_id[1:]), accuracy=1.0),
            floor_id=floor_id,
        )
        for m in range(start_minute, end_minute + 1, step)
    ]


class _FixedDetector:
    def __init__(self, signal: Optional[PatternSignal]):
        self.signal = signal
        self.seen: list = []

    def detect(self, daily: DailyZoneTime) -> Optional[PatternSignal]:
        self.seen.append(daily)
        return self.signal


class TestParseObservations:
    def test_bad_records_are_rejected_individually(self, caplog):
        records = [
            {
                "worker_id": "w_17",
                "timestamp": "2024-03-04T07:00:00",
                "coordinates": {"x": 1, "y": 2, "z": 3, "accuracy": 1.5},
                "floor_id": "L3",
            },
            {
                "worker_id": "w_17",
                "timestamp": "not-a-time",
                "coordinates": {"x": 1, "y": 2, "z": 3, "accuracy": 1.5},
                "floor_id": "L3",
            },
            {
                "worker_id": "w_17",
                "timestamp": "2024-03-04T07:02:00",
                "coordinates": {"x": 1, "y": 2, "z": 3, "accuracy": -4},
                "floor_id": "L3",
            },
            {
                "worker_id": "w_17",
                "timestamp": "2024-03-04T07:04:00",
                "coordinates": {"x": 1, "y": 2, "z": 3, "accuracy": 0},
                "floor_id": "L3",
            },
        ]
        batch = parse_observations(records)

        assert len(batch.observations) == 2
        assert [r.index for r in batch.rejected] == [1, 2]
        assert "timestamp" in batch.rejected[0].reason
        assert "accuracy" in batch.rejected[1].reason
        assert batch.rejected[0].worker_id == "w_17"
        assert "Rejected 2 of 4" in caplog.text

    def test_mixed_timestamp_styles_reject_only_the_odd_record(self, caplog):
        records = [
            {
                "worker_id": "w_17",
                "timestamp": f"2024-03-04T07:{m:02d}:00" + ("Z" if m == 6 else ""),
                "coordinates": {"x": 10, "y": 10, "z": 3, "accuracy": 1.0},
                "floor_id": "L3",
            }
            for m in range(0, 11)
        ]
        batch = parse_observations(records)

        assert len(batch.observations) == 10
        assert [r.index for r in batch.rejected] == [6]
        assert "naive" in batch.rejected[0].reason
        assert "Rejected 1 of 11" in caplog.text

        result = VerificationPipeline(_make_catalog()).verify(
            "w_17", DAY, batch.observations, _make_activity()
        )
        assert result.worker_id == "w_17"
        assert result.total_hours == pytest.approx(10 / 60)

    def test_parsed_instances_pass_through(self):
        obs = _pings(0, 0, 5, 5, "L3")[0]
        batch = parse_observations([obs])
        assert batch.observations == [obs]
        assert batch.rejected == []


class TestVerificationPipeline:
    def setup_method(self):
        self.pipeline = VerificationPipeline(_make_catalog())
        self.activity = _make_activity()

    def test_full_day_on_plan_is_auto_verified(self):
        observations = (
            _pings(0, 390, 10, 10, "L3")            # 6.5 h on the deck
            + _pings(400, 460, 35, 10, "L3")        # 1 h in the laydown
        )
        result = self.pipeline.verify("w_17", DAY, observations, self.activity)

        assert result.verification_status == VerificationStatus.AUTO_VERIFIED
        assert result.total_hours == pytest.approx(7.5)
        assert result.confidence == 1.0
        assert result.anomalies == ()
        assert result.suggested_activity is None
        assert {e.zone_id for e in result.zone_breakdown} == {"l3_deck", "l3_laydown"}

    def test_sparse_pings_with_wide_grace_period(self):
        """Eight pings across 7.5 h merge into one visit when the grace period allows."""
        pipeline = VerificationPipeline(
            _make_catalog(), VerificationConfig(grace_period_seconds=90 * 60)
        )
        minutes = [0, 60, 120, 180, 240, 300, 360, 450]
        observations = [p for m in minutes for p in _pings(m, m, 10, 10, "L3")]
        result = pipeline.verify("w_17", DAY, observations, self.activity)

        assert len(observations) == 8
        assert result.total_hours == pytest.approx(7.5)
        assert result.confidence == 1.0
        assert result.verification_status == VerificationStatus.AUTO_VERIFIED
        assert result.anomalies == ()

    def test_time_off_plan_needs_review(self):
        observations = (
            _pings(0, 330, 10, 10, "L3")            # 5.5 h on the deck
            + _pings(360, 510, 5, 5, "L5")          # 2.5 h in the level 5 core
            + _pings(331, 359, 100, 100, "L3")      # walking off the plan, unresolved
        )
        result = self.pipeline.verify("w_17", DAY, observations, self.activity)

        assert result.verification_status == VerificationStatus.NEEDS_REVIEW
        assert result.total_hours == pytest.approx(8.0)
        assert result.confidence == pytest.approx(0.6875)
        assert result.anomalies == ("31% time in unassigned zones",)
        assert result.suggested_activity == "CON-220"
        assert result.unresolved_observations == 15

    def test_no_observations_is_manual_entry(self):
        result = self.pipeline.verify("w_17", DAY, [], self.activity)
        assert result.total_hours == 0
        assert result.confidence == 0
        assert result.verification_status == VerificationStatus.MANUAL_ENTRY
        assert result.zone_breakdown == ()

    def test_observation_order_does_not_matter(self):
        observations = _pings(0, 330, 10, 10, "L3") + _pings(360, 510, 5, 5, "L5")
        forward = self.pipeline.verify("w_17", DAY, observations, self.activity)
        backward = self.pipeline.verify("w_17", DAY, list(reversed(observations)), self.activity)
        assert forward == backward

    def test_suggestion_can_be_disabled(self):
        pipeline = VerificationPipeline(_make_catalog(), VerificationConfig(suggest_activity=False))
        observations = _pings(0, 330, 10, 10, "L3") + _pings(360, 510, 5, 5, "L5")
        result = pipeline.verify("w_17", DAY, observations, self.activity)
        assert result.suggested_activity is None


class TestPatternSignal:
    def setup_method(self):
        self.activity = _make_activity()
        self.observations = _pings(0, 330, 10, 10, "L3") + _pings(360, 510, 5, 5, "L5")

    def test_detector_anomaly_is_appended(self):
        detector = _FixedDetector(
            PatternSignal(is_anomaly=True, confidence=0.8, description="Pattern differs from history")
        )
        pipeline = VerificationPipeline(_make_catalog(), pattern_detector=detector)
        result = pipeline.verify("w_17", DAY, self.observations, self.activity)

        assert result.anomalies == (
            "31% time in unassigned zones",
            "Pattern differs from history",
        )
        assert len(detector.seen) == 1
        assert detector.seen[0].worker_id == "w_17"

    def test_detector_without_anomaly_adds_nothing(self):
        detector = _FixedDetector(
            PatternSignal(is_anomaly=False, confidence=0.1, description="Typical")
        )
        pipeline = VerificationPipeline(_make_catalog(), pattern_detector=detector)
        result = pipeline.verify("w_17", DAY, self.observations, self.activity)
        assert result.anomalies == ("31% time in unassigned zones",)

    def test_explicit_signal_takes_precedence(self):
        detector = _FixedDetector(None)
        pipeline = VerificationPipeline(_make_catalog(), pattern_detector=detector)
        signal = PatternSignal(is_anomaly=True, confidence=0.7, description="Supplied by caller")
        result = pipeline.verify("w_17", DAY, self.observations, self.activity, pattern_signal=signal)
        assert result.anomalies[-1] == "Supplied by caller"
        assert detector.seen == []


class TestVerifyMany:
    def test_independent_worker_days_keep_order(self):
        pipeline = VerificationPipeline(_make_catalog())
        activity = _make_activity()
        jobs = [
            VerificationJob(
                worker_id="w_17",
                work_date=DAY,
                observations=_pings(0, 450, 10, 10, "L3"),
                activity=activity,
            ),
            VerificationJob(
                worker_id="w_23",
                work_date=DAY,
                observations=_pings(0, 450, 5, 5, "L5", worker_id="w_23"),
                activity=activity,
            ),
            VerificationJob(worker_id="w_31", work_date=DAY, activity=activity),
        ]
        results = pipeline.verify_many(jobs, max_workers=3)

        assert [r.worker_id for r in results] == ["w_17", "w_23", "w_31"]
        assert [r.verification_status for r in results] == [
            VerificationStatus.AUTO_VERIFIED,
            VerificationStatus.MANUAL_ENTRY,
            VerificationStatus.MANUAL_ENTRY,
        ]

    def test_no_jobs(self):
        assert VerificationPipeline(_make_catalog()).verify_many([]) == []
