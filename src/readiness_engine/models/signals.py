"""Daily physiological input models."""

from datetime import date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .activity import to_camel


class SleepSession(BaseModel):
    """One night of sleep. Durations are in seconds."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    asleep_seconds: Optional[float] = Field(None, ge=0)
    in_bed_seconds: Optional[float] = Field(None, ge=0)
    deep_seconds: Optional[float] = Field(None, ge=0)
    rem_seconds: Optional[float] = Field(None, ge=0)
    core_seconds: Optional[float] = Field(None, ge=0)
    awake_seconds: Optional[float] = Field(None, ge=0)
    wake_events: Optional[int] = Field(None, ge=0)
    bedtime: Optional[datetime] = None
    wake_time: Optional[datetime] = None


class SleepBaseline(BaseModel):
    """Trailing sleep habits. Clock times are minutes after noon."""

    model_config = ConfigDict(frozen=True)

    duration_seconds: Optional[float] = None
    bedtime_minutes: Optional[float] = None
    wake_minutes: Optional[float] = None
    score: Optional[float] = None


class DailySignalBundle(BaseModel):
    """All fused inputs for one calendar day.

    Missing values are ``None``. Scorers skip the affected component rather
    than treating the gap as zero.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    date: date_type

    hrv: Optional[float] = Field(None, gt=0, description="HRV in ms")
    hrv_baseline: Optional[float] = None
    overnight_hrv: Optional[float] = Field(None, gt=0)
    rhr: Optional[float] = Field(None, gt=0, description="Resting HR in bpm")
    rhr_baseline: Optional[float] = None
    respiratory_rate: Optional[float] = Field(None, gt=0)
    respiratory_baseline: Optional[float] = None

    sleep: Optional[SleepSession] = None
    sleep_baseline: SleepBaseline = Field(default_factory=SleepBaseline)
    sleep_score: Optional[int] = Field(None, ge=0, le=100, description="Prior night's sleep score")

    atl: Optional[float] = None
    ctl: Optional[float] = None
    recent_strain: Optional[float] = Field(None, description="Trailing-week training stress sum")

    activity_level: Optional[float] = Field(None, description="Today's step count")
    activity_baseline: Optional[float] = None

    # Daily values newest first, used for multi-day trend consistency
    hrv_trend: List[float] = Field(default_factory=list)
    rhr_trend: List[float] = Field(default_factory=list)

    @property
    def tsb(self) -> Optional[float]:
        if self.atl is None or self.ctl is None:
            return None
        return self.ctl - self.atl

    @property
    def sleep_duration_seconds(self) -> Optional[float]:
        return self.sleep.asleep_seconds if self.sleep else None


class DailyMetrics(BaseModel):
    """One historical day of raw health-store values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    date: date_type
    hrv: Optional[float] = None
    rhr: Optional[float] = None
    respiratory_rate: Optional[float] = None
    sleep_seconds: Optional[float] = None
    bedtime: Optional[datetime] = None
    wake_time: Optional[datetime] = None
    sleep_score: Optional[int] = None
    steps: Optional[float] = None
