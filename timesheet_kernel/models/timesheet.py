"""Visits and per-zone time breakdowns produced by the Time Aggregator."""

from datetime import date, datetime, timedelta
from typing import List

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Visit(BaseModel):
    """One continuous interval attributed to a single zone. Never mutated."""

    model_config = ConfigDict(frozen=True)

    zone_id: str
    start: datetime
    end: datetime
    observation_count: int = Field(ge=1, default=1)

    @model_validator(mode="after")
    def _check_order(self) -> "Visit":
        if self.end < self.start:
            raise ValueError("visit end must not precede its start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def minutes(self) -> float:
        return self.duration.total_seconds() / 60.0


class ZoneTimeBreakdown(BaseModel):
    """Qualifying time a worker spent in one zone over a day."""

    model_config = ConfigDict(frozen=True)

    zone_id: str
    total_minutes: float = Field(ge=0.0)
    visits: List[Visit]
    confidence: float = Field(ge=0.0, le=1.0)   # Mean mapping confidence of kept observations


class DailyZoneTime(BaseModel):
    """
    Everything the aggregator learned about one worker-day.

    `unresolved_observations` is a side channel: pings that matched no zone
    are excluded from every breakdown, but their count is kept for
    inspection.
    """

    model_config = ConfigDict(frozen=True)

    worker_id: str
    work_date: date
    breakdowns: List[ZoneTimeBreakdown] = []
    unresolved_observations: int = Field(ge=0, default=0)

    @property
    def total_minutes(self) -> float:
        return sum(b.total_minutes for b in self.breakdowns)
