"""Tests for the stress score."""

import pytest
from datetime import date

from readiness_engine.config import StressWeights
from readiness_engine.models.scores import StressLevel, clamp_score
from readiness_engine.models.signals import DailySignalBundle, SleepSession
from readiness_engine.services.stress import (
    StressScorer,
    chronic_stress,
    hrv_stress,
    recovery_deficit_stress,
    rhr_stress,
    sleep_disruption_stress,
    training_load_stress,
)

DAY = date(2024, 3, 12)


class TestComponents:
    def test_hrv(self):
        assert hrv_stress(40.0, 50.0) == pytest.approx(6.0)
        assert hrv_stress(60.0, 50.0) == 0.0
        assert hrv_stress(5.0, 50.0) == 15.0
        assert hrv_stress(None, 50.0) is None

    def test_rhr(self):
        assert rhr_stress(55.0, 50.0) == pytest.approx(5.0)
        assert rhr_stress(45.0, 50.0) == 0.0
        assert rhr_stress(100.0, 50.0) == 15.0

    def test_recovery_deficit(self):
        assert recovery_deficit_stress(100) == 0.0
        assert recovery_deficit_stress(0) == pytest.approx(30.0)
        assert recovery_deficit_stress(None) is None

    def test_sleep_disruption(self):
        assert sleep_disruption_stress(50) == pytest.approx(10.0)
        assert sleep_disruption_stress(None, wake_events=9) == pytest.approx(15.0)
        assert sleep_disruption_stress(None, None) is None

    def test_training_load_ratio(self):
        assert training_load_stress(20.0, 50.0) == 0.0
        assert training_load_stress(45.0, 50.0) == pytest.approx(7.5)
        assert training_load_stress(55.0, 50.0) == pytest.approx(20.0)
        assert training_load_stress(75.0, 50.0) == 30.0
        assert training_load_stress(50.0, 0.0) is None

    def test_tuned_cap_scales_curve(self):
        assert hrv_stress(40.0, 50.0, cap=30.0) == pytest.approx(12.0)
        assert hrv_stress(40.0, 50.0, cap=3.0) == pytest.approx(1.2)
        assert hrv_stress(0.1, 50.0, cap=3.0) == 3.0


class TestChronicStress:
    def test_no_history(self):
        assert chronic_stress(60, []) == 60

    def test_uses_last_six_days_and_today(self):
        history = [90.0] * 5 + [40.0] * 6
        assert chronic_stress(60, history) == clamp_score((6 * 40 + 60) / 7)


class TestStressScorer:
    def setup_method(self):
        self.scorer = StressScorer()

    def test_no_inputs(self):
        assert self.scorer.score(DailySignalBundle(date=DAY)) is None

    def test_sums_component_points(self):
        bundle = DailySignalBundle(
            date=DAY,
            hrv=40.0, hrv_baseline=50.0,
            rhr=55.0, rhr_baseline=50.0,
            sleep_score=50,
            atl=50.0, ctl=50.0,
        )
        stress = self.scorer.score(bundle, recovery_score=50)

        assert sum(stress.contributions.values()) == pytest.approx(51.0)
        assert stress.acute == clamp_score(sum(stress.contributions.values()))
        assert stress.level == StressLevel.MODERATE
        assert stress.chronic == stress.acute
        assert stress.load_ratio == pytest.approx(1.0)
        assert stress.sub_scores["recovery_deficit"] == 50
        assert stress.date == DAY

    def test_missing_components_are_left_out(self):
        stress = self.scorer.score(DailySignalBundle(date=DAY, rhr=55.0, rhr_baseline=50.0))
        assert set(stress.contributions) == {"rhr"}
        assert stress.load_ratio is None

    def test_wake_events_stand_in_for_sleep_score(self):
        bundle = DailySignalBundle(date=DAY, sleep=SleepSession(wake_events=9))
        stress = self.scorer.score(bundle)
        assert stress.contributions["sleep_disruption"] == pytest.approx(15.0)

    def test_acute_capped_at_100(self):
        bundle = DailySignalBundle(
            date=DAY,
            hrv=5.0, hrv_baseline=50.0,
            rhr=100.0, rhr_baseline=50.0,
            sleep_score=0,
            atl=100.0, ctl=50.0,
        )
        stress = self.scorer.score(bundle, recovery_score=0)
        assert stress.acute == 100
        assert stress.level == StressLevel.HIGH

    def test_custom_weights(self):
        scorer = StressScorer(weights=StressWeights(training_load=60.0))
        stress = scorer.score(DailySignalBundle(date=DAY, atl=75.0, ctl=50.0))
        assert stress.acute == 60
        assert stress.sub_scores["training_load"] == 100

    def test_chronic_uses_history(self):
        bundle = DailySignalBundle(date=DAY, rhr=55.0, rhr_baseline=50.0)
        stress = self.scorer.score(bundle, history=[40.0] * 10)
        assert stress.chronic == clamp_score((6 * 40 + stress.acute) / 7)
