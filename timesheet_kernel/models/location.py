"""Location Observation — a single raw position ping from a worker's device."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class Coordinates(BaseModel):
    """Site-plan position with the device's reported uncertainty."""

    model_config = ConfigDict(frozen=True)

    x: float                                # Metres, site plan frame
    y: float
    z: int = 0                              # Floor level
    accuracy: float = Field(ge=0.0)         # Uncertainty radius in metres


class LocationObservation(BaseModel):
    """One telemetry ping. Immutable once ingested."""

    model_config = ConfigDict(frozen=True)

    worker_id: str
    timestamp: datetime
    coordinates: Coordinates
    floor_id: str

    @property
    def is_tz_aware(self) -> bool:
        """True when the timestamp carries a UTC offset."""
        return self.timestamp.utcoffset() is not None
