"""
Verification Pipeline — runs one worker-day through the engine.

  observations -> ZoneMapper -> TimeAggregator -> VerificationScorer -> result

Each stage completes for the whole day before the next begins. Runs for
different (worker, date) pairs share nothing but the read-only catalog and
can execute in parallel. The pipeline never blocks, retries or times out;
streaming callers re-run it on the full accumulated day.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Iterable, List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from timesheet_kernel.aggregation.aggregator import TimeAggregator
from timesheet_kernel.catalog.store import ZoneCatalog
from timesheet_kernel.models.activity import ActivityAssignment
from timesheet_kernel.models.config import VerificationConfig
from timesheet_kernel.models.location import LocationObservation
from timesheet_kernel.models.timesheet import DailyZoneTime
from timesheet_kernel.models.verification import (
    PatternSignal,
    VerificationResult,
    VerificationStatus,
)
from timesheet_kernel.scoring.scorer import VerificationScorer, suggest_activity
from timesheet_kernel.zones.mapper import ZoneMapper

logger = logging.getLogger(__name__)


class PatternDetector(Protocol):
    """Protocol for the external historical-pattern anomaly detector."""

    def detect(self, daily: DailyZoneTime) -> Optional[PatternSignal]: ...


class RejectedRecord(BaseModel):
    """A raw observation that failed validation, with the reason."""

    model_config = ConfigDict(frozen=True)

    index: int
    reason: str
    worker_id: Optional[str] = None


class ObservationBatch(BaseModel):
    """Parsed observations plus the records that could not be used."""

    observations: List[LocationObservation] = []
    rejected: List[RejectedRecord] = []


class VerificationJob(BaseModel):
    """Inputs for one independent worker-day verification."""

    worker_id: str
    work_date: date
    observations: List[LocationObservation] = []
    activity: ActivityAssignment
    pattern_signal: Optional[PatternSignal] = None


def parse_observations(
    records: Iterable[Union[dict, LocationObservation]],
) -> ObservationBatch:
    """
    Validate raw observation records one by one.

    A malformed record (unparseable timestamp, negative accuracy, missing
    field) is rejected on its own and never blocks the rest of the batch.

    Naive and offset-aware timestamps cannot be ordered against each other.
    The first accepted record fixes the batch's style; later records in the
    other style are rejected.
    """
    observations: List[LocationObservation] = []
    rejected: List[RejectedRecord] = []
    batch_aware: Optional[bool] = None

    for index, record in enumerate(records):
        if isinstance(record, LocationObservation):
            observation = record
        else:
            try:
                observation = LocationObservation.model_validate(record)
            except ValidationError as exc:
                reason = "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                )
                worker_id = record.get("worker_id") if isinstance(record, dict) else None
                rejected.append(RejectedRecord(index=index, reason=reason, worker_id=worker_id))
                continue

        if batch_aware is None:
            batch_aware = observation.is_tz_aware
        elif observation.is_tz_aware != batch_aware:
            expected = "offset-aware" if batch_aware else "naive"
            rejected.append(RejectedRecord(
                index=index,
                reason=f"timestamp: expected {expected} timestamp like the rest of the batch",
                worker_id=observation.worker_id,
            ))
            continue
        observations.append(observation)

    if rejected:
        logger.warning(
            "Rejected %d of %d observation record(s); first: #%d %s",
            len(rejected), len(observations) + len(rejected),
            rejected[0].index, rejected[0].reason,
        )
    return ObservationBatch(observations=observations, rejected=rejected)


class VerificationPipeline:
    """Wires the mapper, aggregator and scorer for worker-day verification."""

    def __init__(
        self,
        catalog: ZoneCatalog,
        config: Optional[VerificationConfig] = None,
        pattern_detector: Optional[PatternDetector] = None,
    ):
        self.catalog = catalog
        self.config = config or VerificationConfig()
        self.mapper = ZoneMapper(self.config)
        self.aggregator = TimeAggregator(self.config)
        self.scorer = VerificationScorer(self.config)
        self.pattern_detector = pattern_detector

    def verify(
        self,
        worker_id: str,
        work_date: date,
        observations: Sequence[LocationObservation],
        activity: ActivityAssignment,
        pattern_signal: Optional[PatternSignal] = None,
    ) -> VerificationResult:
        """
        Verify one worker-day end to end.

        An explicit pattern_signal takes precedence over the configured
        detector. Its description is appended only when it flags an anomaly.
        """
        if activity.planned_date != work_date:
            logger.warning(
                "Activity %s is planned for %s but verified for %s",
                activity.activity_id, activity.planned_date.isoformat(), work_date.isoformat(),
            )

        assignments = self.mapper.map_all(observations, self.catalog)
        daily = self.aggregator.aggregate_day(worker_id, work_date, assignments)
        result = self.scorer.score(
            worker_id,
            work_date,
            daily.breakdowns,
            activity,
            unresolved_observations=daily.unresolved_observations,
        )

        if (
            self.config.suggest_activity
            and result.verification_status != VerificationStatus.AUTO_VERIFIED
        ):
            suggestion = suggest_activity(result, self.catalog)
            if suggestion is not None:
                result = result.with_suggested_activity(suggestion)

        if pattern_signal is None and self.pattern_detector is not None:
            pattern_signal = self.pattern_detector.detect(daily)
        if pattern_signal is not None:
            result = result.with_pattern_signal(pattern_signal)

        logger.info(
            "Verified %s on %s: %s (confidence %.2f, %.2f h, %d anomalies)",
            worker_id, work_date.isoformat(), result.verification_status.value,
            result.confidence, result.total_hours, len(result.anomalies),
        )
        return result

    def run_job(self, job: VerificationJob) -> VerificationResult:
        return self.verify(
            job.worker_id,
            job.work_date,
            job.observations,
            job.activity,
            pattern_signal=job.pattern_signal,
        )

    def verify_many(
        self,
        jobs: Sequence[VerificationJob],
        max_workers: Optional[int] = None,
    ) -> List[VerificationResult]:
        """Run independent worker-days in parallel. Results keep job order."""
        if not jobs:
            return []
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            return list(executor.map(self.run_job, jobs))
