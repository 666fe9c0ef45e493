"""
Zone Catalog — the immutable set of zone geometries a verification run reads.

Behavioral Contract:
- Built once by `load_catalog`, never mutated afterwards
- Safe to share read-only across concurrent verification runs
- Geometry is validated and compiled at load time, never per query
- A malformed zone is rejected with a ConfigurationError entry and logged;
  the remaining zones still load
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import ValidationError
from shapely.geometry import Polygon
from shapely.prepared import PreparedGeometry, prep

from timesheet_kernel.models.zone import ZoneGeometry

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised (or collected) when a zone definition cannot be used."""

    def __init__(self, reason: str, zone_id: Optional[str] = None):
        self.reason = reason
        self.zone_id = zone_id
        label = f"zone {zone_id!r}" if zone_id else "zone record"
        super().__init__(f"Invalid {label}: {reason}")


@dataclass(frozen=True)
class CompiledZone:
    """A validated zone with its geometry ready for spatial queries."""

    zone: ZoneGeometry
    polygon: Polygon
    prepared: PreparedGeometry
    area: float

    @property
    def zone_id(self) -> str:
        return self.zone.zone_id

    @property
    def floor_id(self) -> str:
        return self.zone.floor_id

    @classmethod
    def from_geometry(cls, zone: ZoneGeometry) -> "CompiledZone":
        polygon = zone.boundary.to_polygon()
        return cls(zone=zone, polygon=polygon, prepared=prep(polygon), area=polygon.area)


class ZoneCatalog:
    """Read-only zone registry grouped by floor."""

    def __init__(self, zones: Iterable[CompiledZone] = ()):
        by_id: Dict[str, CompiledZone] = {}
        by_floor: Dict[str, List[CompiledZone]] = {}
        for compiled in zones:
            by_id[compiled.zone_id] = compiled
            by_floor.setdefault(compiled.floor_id, []).append(compiled)
        self._by_id = by_id
        self._by_floor: Dict[str, Tuple[CompiledZone, ...]] = {
            floor_id: tuple(entries) for floor_id, entries in by_floor.items()
        }

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, zone_id: object) -> bool:
        return zone_id in self._by_id

    def get(self, zone_id: str) -> Optional[CompiledZone]:
        """Get a zone by ID, or None if it is not in the catalog."""
        return self._by_id.get(zone_id)

    def zones_for_floor(self, floor_id: str) -> Tuple[CompiledZone, ...]:
        """Candidate zones for observations on a floor."""
        return self._by_floor.get(floor_id, ())

    def zone_ids(self) -> List[str]:
        return sorted(self._by_id)

    def floors(self) -> List[str]:
        return sorted(self._by_floor)


class CatalogLoadResult:
    """The loaded catalog plus every zone that was rejected."""

    def __init__(self, catalog: ZoneCatalog, errors: List[ConfigurationError]):
        self.catalog = catalog
        self.errors = errors

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> ZoneCatalog:
        """Return the catalog, or raise if any zone was rejected."""
        if self.errors:
            details = "; ".join(str(e) for e in self.errors)
            raise ConfigurationError(
                f"{len(self.errors)} zone(s) rejected: {details}"
            )
        return self.catalog


def _summarize_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def load_catalog(records: Iterable[Union[dict, ZoneGeometry]]) -> CatalogLoadResult:
    """
    Validate and compile zone records into an immutable catalog.

    Each record is either a ZoneGeometry or a dict in its shape. Invalid
    geometry (fewer than 3 vertices, zero area, self-intersecting ring),
    missing fields and duplicate zone IDs are reported per zone.
    """
    compiled: List[CompiledZone] = []
    seen: Dict[str, int] = {}
    errors: List[ConfigurationError] = []

    for index, record in enumerate(records):
        if isinstance(record, ZoneGeometry):
            zone = record
        else:
            zone_id = record.get("zone_id") if isinstance(record, dict) else None
            try:
                zone = ZoneGeometry.model_validate(record)
            except ValidationError as exc:
                errors.append(
                    ConfigurationError(_summarize_validation_error(exc), zone_id=zone_id)
                )
                continue

        if zone.zone_id in seen:
            errors.append(
                ConfigurationError(
                    f"duplicate zone_id (first defined at record {seen[zone.zone_id]})",
                    zone_id=zone.zone_id,
                )
            )
            continue

        seen[zone.zone_id] = index
        compiled.append(CompiledZone.from_geometry(zone))

    for error in errors:
        logger.warning("Zone catalog: %s", error)

    catalog = ZoneCatalog(compiled)
    logger.info(
        "Zone catalog loaded: %d zone(s) on %d floor(s), %d rejected",
        len(catalog), len(catalog.floors()), len(errors),
    )
    return CatalogLoadResult(catalog=catalog, errors=errors)
