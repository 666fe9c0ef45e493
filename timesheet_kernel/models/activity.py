"""Activity Assignment — the externally planned work a timesheet is checked against."""

from datetime import date
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class PlannedZoneRole(str, Enum):
    PRIMARY = "primary"
    SUPPORT = "support"
    AUXILIARY = "auxiliary"


class PlannedZone(BaseModel):
    """A zone the activity is expected to use, and for how long."""

    model_config = ConfigDict(frozen=True)

    zone_id: str
    role: PlannedZoneRole = PlannedZoneRole.PRIMARY
    expected_hours: float = Field(ge=0.0, default=0.0)


class ActivityAssignment(BaseModel):
    """Planned activity for one worker-day, supplied by scheduling."""

    model_config = ConfigDict(frozen=True)

    activity_id: str
    planned_zones: List[PlannedZone] = []
    planned_date: date
    planned_hours: float = Field(ge=0.0, default=0.0)

    def assigned_zone_ids(self) -> Set[str]:
        return {z.zone_id for z in self.planned_zones}

    def planned_zone(self, zone_id: str) -> Optional[PlannedZone]:
        return next((z for z in self.planned_zones if z.zone_id == zone_id), None)
