"""Zone Geometry — named, bounded regions of a floor and the mapping outcome."""

from enum import Enum
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from shapely.geometry import Polygon

from timesheet_kernel.models.location import LocationObservation

Vertex = Tuple[float, float]


class ZoneCategory(str, Enum):
    PRIMARY = "primary"         # Where planned work happens
    SUPPORT = "support"         # Staging, material storage
    TRANSIT = "transit"         # Corridors, stairs, hoists
    RESTRICTED = "restricted"   # Access-controlled areas


class PolygonBoundary(BaseModel):
    """
    General boundary: an ordered ring of at least three vertices.

    The closing vertex may be repeated or omitted. The ring must be simple
    (no self-intersection) and enclose a positive area.
    """

    model_config = ConfigDict(frozen=True)

    shape: Literal["polygon"] = "polygon"
    vertices: List[Vertex]

    @field_validator("vertices")
    @classmethod
    def _check_ring(cls, vertices: List[Vertex]) -> List[Vertex]:
        ring = list(vertices)
        if len(ring) > 1 and ring[0] == ring[-1]:
            ring = ring[:-1]
        if len(ring) < 3:
            raise ValueError("boundary ring needs at least 3 distinct vertices")
        polygon = Polygon(ring)
        # Collinear rings are also invalid to shapely; report the flat shape first
        if polygon.convex_hull.area <= 0:
            raise ValueError("boundary ring must enclose a positive area")
        if not polygon.is_valid:
            raise ValueError("boundary ring must not self-intersect")
        return ring

    def ring(self) -> List[Vertex]:
        return list(self.vertices)

    def to_polygon(self) -> Polygon:
        return Polygon(self.vertices)


class RectangleBoundary(BaseModel):
    """Axis-aligned rectangle; a polygon ring of its four corners."""

    model_config = ConfigDict(frozen=True)

    shape: Literal["rectangle"] = "rectangle"
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @model_validator(mode="after")
    def _check_extent(self) -> "RectangleBoundary":
        if self.max_x <= self.min_x or self.max_y <= self.min_y:
            raise ValueError("rectangle must enclose a positive area")
        return self

    def ring(self) -> List[Vertex]:
        return [
            (self.min_x, self.min_y),
            (self.max_x, self.min_y),
            (self.max_x, self.max_y),
            (self.min_x, self.max_y),
        ]

    def to_polygon(self) -> Polygon:
        return Polygon(self.ring())


ZoneBoundary = Annotated[
    Union[PolygonBoundary, RectangleBoundary],
    Field(discriminator="shape"),
]


class ZoneGeometry(BaseModel):
    """A catalog entry: one zone on one floor. Validated at load time."""

    model_config = ConfigDict(frozen=True)

    zone_id: str
    floor_id: str
    name: str
    category: ZoneCategory
    boundary: ZoneBoundary
    activity_codes: List[str] = []          # Activities this zone supports


class ZoneMatch(BaseModel):
    """A resolved zone and how certain the mapper is about it."""

    model_config = ConfigDict(frozen=True)

    zone_id: str
    confidence: float = Field(ge=0.0, le=1.0)


class ZoneAssignment(BaseModel):
    """
    Output of the Zone Mapper for one observation.

    `match` is None when the location is unresolved: no zone contained the
    point with enough confidence. Unresolved observations contribute to no
    zone's time.
    """

    model_config = ConfigDict(frozen=True)

    observation: LocationObservation
    match: Optional[ZoneMatch] = None

    @property
    def resolved(self) -> bool:
        return self.match is not None

    @property
    def zone_id(self) -> Optional[str]:
        return self.match.zone_id if self.match else None

    @property
    def confidence(self) -> float:
        return self.match.confidence if self.match else 0.0

