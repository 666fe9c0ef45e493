"""Timesheet Kernel data models."""

from timesheet_kernel.models.activity import (
    ActivityAssignment,
    PlannedZone,
    PlannedZoneRole,
)
from timesheet_kernel.models.config import VerificationConfig
from timesheet_kernel.models.location import Coordinates, LocationObservation
from timesheet_kernel.models.timesheet import DailyZoneTime, Visit, ZoneTimeBreakdown
from timesheet_kernel.models.verification import (
    PatternSignal,
    VerificationResult,
    VerificationStatus,
    ZoneBreakdownEntry,
)
from timesheet_kernel.models.zone import (
    PolygonBoundary,
    RectangleBoundary,
    ZoneAssignment,
    ZoneBoundary,
    ZoneCategory,
    ZoneGeometry,
    ZoneMatch,
)

__all__ = [
    "ActivityAssignment",
    "Coordinates",
    "DailyZoneTime",
    "LocationObservation",
    "PatternSignal",
    "PlannedZone",
    "PlannedZoneRole",
    "PolygonBoundary",
    "RectangleBoundary",
    "VerificationConfig",
    "VerificationResult",
    "VerificationStatus",
    "Visit",
    "ZoneAssignment",
    "ZoneBoundary",
    "ZoneBreakdownEntry",
    "ZoneCategory",
    "ZoneGeometry",
    "ZoneMatch",
    "ZoneTimeBreakdown",
]
