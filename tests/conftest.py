"""Shared fixtures for readiness engine tests."""

from datetime import date, datetime, time, timedelta
from typing import Dict, List

import pytest

from readiness_engine.config import Settings
from readiness_engine.integrations.base import MetricType, Sample
from readiness_engine.integrations.memory import InMemoryHealthStore
from readiness_engine.models.activity import Activity, ActivityType, Provider
from readiness_engine.models.signals import SleepSession

DAY = date(2024, 3, 12)


@pytest.fixture
def day() -> date:
    return DAY


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, database_path=tmp_path / "readiness.db")


def make_activity(
    provider: Provider = Provider.INTERVALS,
    activity_id: str = "1",
    start: datetime = datetime(2024, 3, 12, 8, 0),
    activity_type: ActivityType = ActivityType.RIDE,
    **kwargs,
) -> Activity:
    """Build an Activity with sensible defaults."""
    fields = {"duration_seconds": 3600.0, "distance_meters": 30000.0}
    fields.update(kwargs)
    return Activity(
        id=activity_id,
        provider=provider,
        start_time=start,
        activity_type=activity_type,
        **fields,
    )


def night(wake_day: date, hours: float = 8.0, wake_events: int = 1) -> SleepSession:
    """A night ending at 07:00 on ``wake_day`` with a healthy stage split."""
    wake = datetime.combine(wake_day, time(7, 0))
    asleep = hours * 3600
    return SleepSession(
        asleep_seconds=asleep,
        in_bed_seconds=asleep + 1800,
        deep_seconds=asleep * 0.2,
        rem_seconds=asleep * 0.22,
        wake_events=wake_events,
        bedtime=wake - timedelta(seconds=asleep + 1800),
        wake_time=wake,
    )


def health_store_for(
    end: date,
    days: int = 8,
    hrv: float = 50.0,
    rhr: float = 50.0,
    today_hrv: float = None,
    today_rhr: float = None,
) -> InMemoryHealthStore:
    """A health store with ``days`` days of steady readings ending on ``end``."""
    samples: Dict[MetricType, List[Sample]] = {
        MetricType.HRV: [],
        MetricType.RESTING_HR: [],
        MetricType.RESPIRATORY_RATE: [],
        MetricType.STEPS: [],
    }
    sleep = {}
    for offset in range(days):
        d = end - timedelta(days=offset)
        stamp = datetime.combine(d, time(7, 5))
        is_today = offset == 0
        samples[MetricType.HRV].append(
            Sample(stamp, today_hrv if is_today and today_hrv is not None else hrv)
        )
        samples[MetricType.RESTING_HR].append(
            Sample(stamp, today_rhr if is_today and today_rhr is not None else rhr)
        )
        samples[MetricType.RESPIRATORY_RATE].append(Sample(stamp, 15.0))
        samples[MetricType.STEPS].append(Sample(stamp, 9000.0))
        sleep[d] = night(d)
    return InMemoryHealthStore(samples=samples, sleep=sleep)


@pytest.fixture
def health_store(day) -> InMemoryHealthStore:
    return health_store_for(day)
