"""Tests for the smart stress threshold."""

import pytest

from readiness_engine.config import Settings
from readiness_engine.services.alerts import SmartThreshold, fitness_adjustment

ALTERNATING = [40.0, 60.0] * 15  # mean 50, population sigma 10


class TestFitnessAdjustment:
    def test_reference_ctl_is_neutral(self):
        assert fitness_adjustment(70.0) == 0.0
        assert fitness_adjustment(None) == 0.0

    def test_bounded(self):
        assert fitness_adjustment(130.0) == pytest.approx(10.0)
        assert fitness_adjustment(250.0) == 10.0
        assert fitness_adjustment(0.0) == -10.0


class TestSmartThreshold:
    def setup_method(self):
        self.threshold = SmartThreshold()

    def test_default_below_min_history(self):
        assert self.threshold.compute_threshold([80.0] * 6) == 50
        assert self.threshold.is_adaptive([80.0] * 6) is False

    def test_mean_plus_one_and_a_half_sigma(self):
        assert self.threshold.compute_threshold(ALTERNATING, ctl=70.0) == 65

    def test_fitter_athlete_tolerates_more(self):
        assert self.threshold.compute_threshold(ALTERNATING, ctl=100.0) == 70
        assert self.threshold.compute_threshold(ALTERNATING, ctl=40.0) == 60

    def test_floor_and_ceiling(self):
        assert self.threshold.compute_threshold([10.0] * 30) == 40
        assert self.threshold.compute_threshold([90.0] * 30) == 70

    def test_only_recent_history_counts(self):
        history = [95.0] * 100 + ALTERNATING
        assert self.threshold.compute_threshold(history, ctl=70.0) == 65

    def test_alert_is_strictly_above(self):
        assert self.threshold.evaluate(66, ALTERNATING, ctl=70.0).triggered is True
        alert = self.threshold.evaluate(65, ALTERNATING, ctl=70.0)
        assert alert.triggered is False
        assert alert.margin == 0
        assert alert.adaptive is True
        assert alert.history_size == 30

    def test_should_alert_default_threshold(self):
        assert self.threshold.should_alert(51, []) is True
        assert self.threshold.should_alert(50, []) is False

    def test_from_settings(self):
        settings = Settings(_env_file=None, alert_default_threshold=45.0, alert_min_history=3)
        threshold = SmartThreshold.from_settings(settings)
        assert threshold.compute_threshold([50.0, 50.0]) == 45
        assert threshold.is_adaptive([50.0] * 3) is True
