"""
Zone Mapper — resolves one uncertain point observation to a zone.

Behavioral Contract:
- Considers only candidate zones on the observation's floor
- Containment is closed-set: a point on a boundary edge is inside
- Confidence reflects how far inside the zone the point is, relative to the
  device's reported accuracy radius
- Overlapping zones: highest confidence wins, then the smallest area
- Returns an unresolved assignment (never raises) when no zone qualifies
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from shapely.geometry import Point

from timesheet_kernel.catalog.store import CompiledZone, ZoneCatalog
from timesheet_kernel.models.config import VerificationConfig
from timesheet_kernel.models.location import LocationObservation
from timesheet_kernel.models.zone import ZoneAssignment, ZoneMatch

logger = logging.getLogger(__name__)


def confidence_from_margin(distance: float, accuracy: float) -> float:
    """
    Graduated confidence from the distance to the nearest boundary edge:
      distance > 2x accuracy:   1.0
      distance > 1x accuracy:   0.85
      distance > 0.5x accuracy: 0.7
      otherwise:                0.5
    """
    if distance > 2 * accuracy:
        return 1.0
    elif distance > accuracy:
        return 0.85
    elif distance > 0.5 * accuracy:
        return 0.7
    else:
        return 0.5


class ZoneMapper:
    """Maps location observations onto catalog zones."""

    def __init__(self, config: Optional[VerificationConfig] = None):
        self.config = config or VerificationConfig()

    def map(
        self,
        observation: LocationObservation,
        candidate_zones: Iterable[CompiledZone],
    ) -> ZoneAssignment:
        """Find the best-matching zone for one observation."""
        coords = observation.coordinates
        point = Point(coords.x, coords.y)

        # (confidence, area, zone_id) for every zone containing the point
        containing: List[Tuple[float, float, str]] = []
        for zone in candidate_zones:
            if zone.floor_id != observation.floor_id:
                continue
            if not zone.prepared.covers(point):
                continue
            distance = zone.polygon.exterior.distance(point)
            containing.append(
                (confidence_from_margin(distance, coords.accuracy), zone.area, zone.zone_id)
            )

        if not containing:
            return ZoneAssignment(observation=observation)

        confidence, _, zone_id = min(containing, key=lambda c: (-c[0], c[1], c[2]))
        if confidence <= self.config.min_match_confidence:
            logger.debug(
                "Unresolved ping for %s at %s: best zone %s only %.2f",
                observation.worker_id, observation.timestamp.isoformat(), zone_id, confidence,
            )
            return ZoneAssignment(observation=observation)

        return ZoneAssignment(
            observation=observation,
            match=ZoneMatch(zone_id=zone_id, confidence=confidence),
        )

    def map_all(
        self,
        observations: Sequence[LocationObservation],
        catalog: ZoneCatalog,
    ) -> List[ZoneAssignment]:
        """Map a batch of observations against the catalog's per-floor zones."""
        assignments = [
            self.map(obs, catalog.zones_for_floor(obs.floor_id))
            for obs in observations
        ]
        unresolved = sum(1 for a in assignments if not a.resolved)
        logger.debug(
            "Mapped %d observation(s): %d resolved, %d unresolved",
            len(assignments), len(assignments) - unresolved, unresolved,
        )
        return assignments
