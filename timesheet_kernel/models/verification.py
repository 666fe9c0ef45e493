"""Verification Result — the single artifact handed to UI, export and persistence."""

from datetime import date
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from timesheet_kernel.models.activity import PlannedZoneRole


class VerificationStatus(str, Enum):
    AUTO_VERIFIED = "auto_verified"     # Timesheet accepted without review
    NEEDS_REVIEW = "needs_review"       # Supervisor should look at the anomalies
    MANUAL_ENTRY = "manual_entry"       # Telemetry cannot support the timesheet


class ZoneBreakdownEntry(BaseModel):
    """One zone's share of the worker-day."""

    model_config = ConfigDict(frozen=True)

    zone_id: str
    hours: float = Field(ge=0.0)
    percentage: float = Field(ge=0.0)       # Share of total hours, 0-100
    is_assigned: bool
    role: Optional[PlannedZoneRole] = None
    expected_hours: Optional[float] = None


class PatternSignal(BaseModel):
    """Result of the external historical-pattern detector for one worker-day."""

    model_config = ConfigDict(frozen=True)

    is_anomaly: bool
    confidence: float = Field(ge=0.0, le=1.0)
    description: str


class VerificationResult(BaseModel):
    """
    Outcome of scoring one (worker, date, activity) triple.

    Frozen: consumers hold read-only copies. A changed input means a new
    result computed from scratch; the `with_*` helpers return copies.
    """

    model_config = ConfigDict(frozen=True)

    worker_id: str
    work_date: date
    activity_id: str
    total_hours: float = Field(ge=0.0)
    verification_status: VerificationStatus
    confidence: float = Field(ge=0.0, le=1.0)
    zone_breakdown: Tuple[ZoneBreakdownEntry, ...] = ()
    anomalies: Tuple[str, ...] = ()
    suggested_activity: Optional[str] = None
    unresolved_observations: int = Field(ge=0, default=0)

    @property
    def unassigned_hours(self) -> float:
        return sum(e.hours for e in self.zone_breakdown if not e.is_assigned)

    def with_pattern_signal(self, signal: PatternSignal) -> "VerificationResult":
        """Append an external pattern anomaly, if the detector flagged one."""
        if not signal.is_anomaly:
            return self
        return self.model_copy(
            update={"anomalies": (*self.anomalies, signal.description)}
        )

    def with_suggested_activity(self, activity_code: Optional[str]) -> "VerificationResult":
        return self.model_copy(update={"suggested_activity": activity_code})
