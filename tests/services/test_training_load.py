"""Tests for the training load engine."""

import pytest
from datetime import date, datetime, timedelta

from conftest import make_activity

from readiness_engine.config import Settings
from readiness_engine.exceptions import ConfigurationError
from readiness_engine.models.activity import Provider
from readiness_engine.services.training_load import TrainingLoadEngine

DAY = date(2024, 3, 12)


def _at(days_ago: int, hour: int = 8) -> datetime:
    return datetime.combine(DAY - timedelta(days=days_ago), datetime.min.time()).replace(hour=hour)


@pytest.fixture
def engine(settings) -> TrainingLoadEngine:
    return TrainingLoadEngine(settings=settings)


class TestTrainingLoadEngine:
    def test_platform_values_are_authoritative(self, engine):
        activities = [
            make_activity(Provider.INTERVALS, "old", _at(3), training_stress=50, platform_ctl=55, platform_atl=40),
            make_activity(Provider.INTERVALS, "new", _at(1), training_stress=90, platform_ctl=60, platform_atl=70),
        ]
        metrics = engine.calculate(activities, DAY)

        assert metrics.source == "platform"
        assert metrics.ctl == 60
        assert metrics.atl == 70
        assert metrics.tsb == -10
        assert metrics.low_confidence is False
        # Strain still comes from the local series
        assert metrics.recent_strain == pytest.approx(140.0)

    def test_future_platform_snapshot_ignored(self, engine):
        activities = [
            make_activity(Provider.INTERVALS, "future", _at(-1), training_stress=50, platform_ctl=99, platform_atl=99),
        ]
        assert engine.calculate(activities, DAY).source == "local"

    def test_local_fallback_from_heart_rate(self, engine):
        activities = [
            make_activity(Provider.STRAVA, "s1", _at(0), avg_hr=150, max_hr=175),
            make_activity(Provider.STRAVA, "s2", _at(2), avg_hr=140),
        ]
        metrics = engine.calculate(activities, DAY)

        assert metrics.source == "local"
        assert metrics.atl > 0
        assert metrics.ctl > 0
        assert metrics.active_days == 2
        assert metrics.low_confidence is True

    def test_sessions_without_impulse_are_skipped(self, engine):
        activities = [make_activity(Provider.HEALTH_STORE, "h1", _at(0))]
        metrics = engine.calculate(activities, DAY)
        assert metrics.ctl == 0.0
        assert metrics.atl == 0.0

    def test_regular_training_is_confident(self, engine):
        activities = [
            make_activity(Provider.STRAVA, f"s{n}", _at(n), training_stress=60)
            for n in range(0, 14)
        ]
        metrics = engine.calculate(activities, DAY)
        assert metrics.low_confidence is False
        assert metrics.recent_strain == pytest.approx(420.0)

    def test_atl_window_cannot_exceed_ctl_window(self):
        with pytest.raises(ConfigurationError):
            TrainingLoadEngine(settings=Settings(_env_file=None, atl_days=50, ctl_days=42))
