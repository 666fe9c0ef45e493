"""
Verification Scorer — decides what happens to a worker-day timesheet.

Behavioral Contract:
- Accepts per-zone breakdowns and the planned ActivityAssignment
- Confidence is the share of accounted hours spent in assigned zones
- Returns a VerificationResult with a single deterministic status
- Never patches a previous result; every call computes from scratch

Anomaly strings are produced only on the needs-review branch. A
manual-entry result carries none, even with very low hours or a high
unassigned share. That asymmetry is kept as-is.
"""

from datetime import date
from typing import List, Optional, Sequence

from timesheet_kernel.catalog.store import ZoneCatalog
from timesheet_kernel.models.activity import ActivityAssignment
from timesheet_kernel.models.config import VerificationConfig
from timesheet_kernel.models.timesheet import ZoneTimeBreakdown
from timesheet_kernel.models.verification import (
    VerificationResult,
    VerificationStatus,
    ZoneBreakdownEntry,
)

LOW_HOURS_ANOMALY = "Low total hours detected"


def _build_entries(
    breakdowns: Sequence[ZoneTimeBreakdown],
    activity: ActivityAssignment,
    total_hours: float,
) -> List[ZoneBreakdownEntry]:
    """Per-zone hours and share of the day, with the plan's view of each zone."""
    entries = []
    for breakdown in breakdowns:
        hours = breakdown.total_minutes / 60.0
        planned = activity.planned_zone(breakdown.zone_id)
        entries.append(
            ZoneBreakdownEntry(
                zone_id=breakdown.zone_id,
                hours=hours,
                percentage=(hours / total_hours * 100.0) if total_hours > 0 else 0.0,
                is_assigned=planned is not None,
                role=planned.role if planned else None,
                expected_hours=planned.expected_hours if planned else None,
            )
        )
    return entries


def _determine_status(
    confidence: float,
    total_hours: float,
    config: VerificationConfig,
) -> VerificationStatus:
    """
    Strict order, first match wins:
      confidence > 0.85 and hours >= 7: auto_verified
      confidence > 0.5:                 needs_review
      otherwise:                        manual_entry
    """
    if (
        confidence > config.auto_verify_confidence
        and total_hours >= config.auto_verify_min_hours
    ):
        return VerificationStatus.AUTO_VERIFIED
    elif confidence > config.review_confidence:
        return VerificationStatus.NEEDS_REVIEW
    else:
        return VerificationStatus.MANUAL_ENTRY


def _review_anomalies(
    confidence: float,
    total_hours: float,
    config: VerificationConfig,
) -> List[str]:
    anomalies = []
    if total_hours < config.low_hours_threshold:
        anomalies.append(LOW_HOURS_ANOMALY)
    unassigned_percent = (1.0 - confidence) * 100.0
    if unassigned_percent > config.unassigned_anomaly_percent:
        anomalies.append(f"{unassigned_percent:.0f}% time in unassigned zones")
    return anomalies


class VerificationScorer:
    """Scores a worker-day's zone time against its planned activity."""

    def __init__(self, config: Optional[VerificationConfig] = None):
        self.config = config or VerificationConfig()

    def score(
        self,
        worker_id: str,
        work_date: date,
        breakdowns: Sequence[ZoneTimeBreakdown],
        activity: ActivityAssignment,
        unresolved_observations: int = 0,
    ) -> VerificationResult:
        """
        Compute total hours, per-zone assignment, confidence, status and anomalies.

        Zero accounted time (including a day with no observations) yields
        confidence 0 and manual_entry rather than an error.
        """
        total_hours = sum(b.total_minutes for b in breakdowns) / 60.0
        entries = _build_entries(breakdowns, activity, total_hours)

        if total_hours > 0:
            assigned_hours = sum(e.hours for e in entries if e.is_assigned)
            confidence = min(1.0, max(0.0, assigned_hours / total_hours))
        else:
            confidence = 0.0

        status = _determine_status(confidence, total_hours, self.config)
        anomalies = []
        if status == VerificationStatus.NEEDS_REVIEW:
            anomalies = _review_anomalies(confidence, total_hours, self.config)

        return VerificationResult(
            worker_id=worker_id,
            work_date=work_date,
            activity_id=activity.activity_id,
            total_hours=total_hours,
            verification_status=status,
            confidence=confidence,
            zone_breakdown=tuple(entries),
            anomalies=tuple(anomalies),
            unresolved_observations=unresolved_observations,
        )


def suggest_activity(
    result: VerificationResult,
    catalog: ZoneCatalog,
) -> Optional[str]:
    """
    Suggest an activity code from where the worker actually spent unplanned time.

    Picks the unassigned zone with the most hours that supports at least one
    activity, and returns its first activity code.
    """
    unassigned = sorted(
        (e for e in result.zone_breakdown if not e.is_assigned),
        key=lambda e: (-e.hours, e.zone_id),
    )
    for entry in unassigned:
        compiled = catalog.get(entry.zone_id)
        if compiled and compiled.zone.activity_codes:
            return compiled.zone.activity_codes[0]
    return None
