"""Verification configuration — tunable thresholds for the engine."""

from datetime import timedelta

from pydantic import BaseModel, Field, model_validator


class VerificationConfig(BaseModel):
    """Configuration shared by the mapper, aggregator and scorer."""

    # Zone mapping
    min_match_confidence: float = Field(ge=0.0, le=1.0, default=0.7)  # Must be exceeded

    # Visit consolidation
    grace_period_seconds: float = Field(ge=0.0, default=120.0)
    min_zone_duration_seconds: float = Field(ge=0.0, default=300.0)

    # Classification
    auto_verify_confidence: float = Field(ge=0.0, le=1.0, default=0.85)
    auto_verify_min_hours: float = Field(ge=0.0, default=7.0)
    review_confidence: float = Field(ge=0.0, le=1.0, default=0.5)

    # Anomalies (needs-review only)
    low_hours_threshold: float = Field(ge=0.0, default=6.0)
    unassigned_anomaly_percent: float = Field(ge=0.0, le=100.0, default=30.0)

    suggest_activity: bool = True

    @model_validator(mode="after")
    def _check_thresholds(self) -> "VerificationConfig":
        if self.review_confidence >= self.auto_verify_confidence:
            raise ValueError(
                "review_confidence must be below auto_verify_confidence"
            )
        return self

    @property
    def grace_period(self) -> timedelta:
        return timedelta(seconds=self.grace_period_seconds)

    @property
    def min_zone_duration(self) -> timedelta:
        return timedelta(seconds=self.min_zone_duration_seconds)
