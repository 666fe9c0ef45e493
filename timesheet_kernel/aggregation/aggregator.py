"""
Time Aggregator — consolidates a worker-day of zone-tagged pings into visits.

Pipeline per worker-day:
  1. Partition by resolved zone (unresolved pings are only counted)
  2. Sort each zone's pings chronologically
  3. Merge pings into visits while the same-zone gap stays within the grace period
  4. Drop visits shorter than the minimum zone duration
  5. Sum kept visit time and average the mapping confidence of their pings

Because step 1 partitions by zone first, a short ping in another zone does
not split a visit. The grace period only governs gaps in the zone's own
filtered timeline.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from timesheet_kernel.models.config import VerificationConfig
from timesheet_kernel.models.timesheet import DailyZoneTime, Visit, ZoneTimeBreakdown
from timesheet_kernel.models.zone import ZoneAssignment

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TimeAggregator:
    """Turns zone-tagged observations into per-zone qualifying time."""

    def __init__(self, config: Optional[VerificationConfig] = None):
        self.config = config or VerificationConfig()

    def aggregate(
        self,
        worker_id: str,
        work_date: date,
        assignments: Sequence[ZoneAssignment],
    ) -> List[ZoneTimeBreakdown]:
        """Per-zone breakdowns for one worker-day, ordered by zone ID."""
        return self.aggregate_day(worker_id, work_date, assignments).breakdowns

    def aggregate_day(
        self,
        worker_id: str,
        work_date: date,
        assignments: Sequence[ZoneAssignment],
    ) -> DailyZoneTime:
        """Breakdowns plus the count of unresolved pings for one worker-day."""
        by_zone: Dict[str, List[ZoneAssignment]] = {}
        unresolved = 0
        foreign = 0
        mixed = 0
        day_aware: Optional[bool] = None

        for assignment in assignments:
            obs = assignment.observation
            if obs.worker_id != worker_id or obs.timestamp.date() != work_date:
                foreign += 1
                continue
            # The first in-scope ping fixes naive vs offset-aware for the day
            if day_aware is None:
                day_aware = obs.is_tz_aware
            elif obs.is_tz_aware != day_aware:
                mixed += 1
                continue
            if assignment.match is None:
                unresolved += 1
                continue
            by_zone.setdefault(assignment.match.zone_id, []).append(assignment)

        if foreign:
            logger.warning(
                "Ignored %d observation(s) not belonging to worker %s on %s",
                foreign, worker_id, work_date.isoformat(),
            )
        if mixed:
            logger.warning(
                "Ignored %d observation(s) for worker %s on %s whose timestamps "
                "mix naive and offset-aware styles",
                mixed, worker_id, work_date.isoformat(),
            )

        breakdowns = []
        for zone_id in sorted(by_zone):
            breakdown = self._summarize_zone(zone_id, by_zone[zone_id])
            if breakdown is not None:
                breakdowns.append(breakdown)

        logger.debug(
            "Aggregated %s on %s: %d zone(s) with qualifying time, %d unresolved ping(s)",
            worker_id, work_date.isoformat(), len(breakdowns), unresolved,
        )
        return DailyZoneTime(
            worker_id=worker_id,
            work_date=work_date,
            breakdowns=breakdowns,
            unresolved_observations=unresolved,
        )

    def _summarize_zone(
        self,
        zone_id: str,
        assignments: List[ZoneAssignment],
    ) -> Optional[ZoneTimeBreakdown]:
        """Merge, filter and sum one zone's pings. None if nothing qualifies."""
        ordered = sorted(assignments, key=lambda a: a.observation.timestamp)
        runs = _merge_runs(
            ordered,
            lambda a: (a.observation.timestamp, a.observation.timestamp),
            self.config.grace_period,
        )
        kept: List[Tuple[Visit, List[ZoneAssignment]]] = []
        for start, end, members in runs:
            visit = Visit(
                zone_id=zone_id, start=start, end=end, observation_count=len(members)
            )
            if visit.duration >= self.config.min_zone_duration:
                kept.append((visit, members))
        if not kept:
            return None

        confidences = [a.confidence for _, members in kept for a in members]
        return ZoneTimeBreakdown(
            zone_id=zone_id,
            total_minutes=sum(visit.minutes for visit, _ in kept),
            visits=[visit for visit, _ in kept],
            confidence=sum(confidences) / len(confidences),
        )

    def reconsolidate(self, visits: Sequence[Visit]) -> List[Visit]:
        """
        Run visit consolidation again over already-built visits.

        Each visit is treated as one observation spanning its start and end.
        Consolidated output is a fixed point: feeding it back returns the
        same visits.
        """
        by_zone: Dict[str, List[Visit]] = {}
        for visit in visits:
            by_zone.setdefault(visit.zone_id, []).append(visit)

        merged: List[Visit] = []
        for zone_id in sorted(by_zone):
            ordered = sorted(by_zone[zone_id], key=lambda v: (v.start, v.end))
            for start, end, members in _merge_runs(
                ordered, lambda v: (v.start, v.end), self.config.grace_period
            ):
                visit = Visit(
                    zone_id=zone_id,
                    start=start,
                    end=end,
                    observation_count=sum(v.observation_count for v in members),
                )
                if visit.duration >= self.config.min_zone_duration:
                    merged.append(visit)
        return merged


def _merge_runs(
    items: Sequence[T],
    span: Callable[[T], Tuple[datetime, datetime]],
    grace: timedelta,
) -> List[Tuple[datetime, datetime, List[T]]]:
    """
    Merge start-ordered spans into runs.

    A span joins the current run when the gap from the run's end to the
    span's start is within the grace period. Identical timestamps are a zero
    gap and always merge.
    """
    runs: List[Tuple[datetime, datetime, List[T]]] = []
    for item in items:
        start, end = span(item)
        if runs and start - runs[-1][1] <= grace:
            run_start, run_end, members = runs[-1]
            members.append(item)
            runs[-1] = (run_start, max(run_end, end), members)
        else:
            runs.append((start, end, [item]))
    return runs
