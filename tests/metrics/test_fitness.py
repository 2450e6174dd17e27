"""Tests for the fitness-fatigue model."""

import pytest
from datetime import date, timedelta

from readiness_engine.metrics.fitness import (
    TrainingLoadSeries,
    calculate_acwr,
    calculate_fitness_metrics,
    determine_risk_zone,
    exponential_average,
    smoothing_factor,
)

END = date(2024, 3, 12)


class TestExponentialAverage:
    """Tests for the seeded exponential average."""

    def test_empty_series_is_zero(self):
        assert exponential_average([], 7) == 0.0

    def test_smoothing_factor(self):
        assert smoothing_factor(7) == pytest.approx(0.25)
        assert smoothing_factor(42) == pytest.approx(2 / 43)

    def test_seeded_with_first_value(self):
        """The first value is the seed, not a step from zero."""
        assert exponential_average([100.0], 7) == 100.0
        assert exponential_average([100.0, 0.0], 7) == pytest.approx(75.0)


class TestTrainingLoadSeries:
    """Tests for bucketing impulses into a daily series."""

    def test_rest_days_are_explicit_zeros(self):
        series = TrainingLoadSeries.from_daily_impulses([(END, 80.0)], END, days=42)
        assert series.days == 42
        assert series.values[-1] == 80.0
        assert series.values.count(0.0) == 41
        assert series.start_date == END - timedelta(days=41)

    def test_same_day_impulses_are_summed(self):
        series = TrainingLoadSeries.from_daily_impulses(
            [(END, 40.0), (END, 60.0)], END, days=7
        )
        assert series.values[-1] == 100.0

    def test_out_of_window_impulses_ignored(self):
        series = TrainingLoadSeries.from_daily_impulses(
            [(END - timedelta(days=50), 100.0), (END + timedelta(days=1), 100.0)],
            END,
            days=42,
        )
        assert sum(series.values) == 0.0

    def test_active_days(self):
        series = TrainingLoadSeries.from_daily_impulses(
            [(END, 50.0), (END - timedelta(days=2), 50.0)], END, days=42
        )
        assert series.active_days == 2


class TestFitnessMetrics:
    """Tests for CTL/ATL/TSB from a series."""

    def test_all_zero_series(self):
        series = TrainingLoadSeries(end_date=END, values=tuple([0.0] * 42))
        metrics = calculate_fitness_metrics(series)

        assert metrics.ctl == 0.0
        assert metrics.atl == 0.0
        assert metrics.tsb == 0.0
        assert metrics.acwr is None
        assert metrics.risk_zone == "unknown"
        assert metrics.low_confidence is True

    def test_single_recent_impulse(self):
        """One session three days ago raises both averages, ATL more than CTL."""
        values = [0.0] * 42
        values[38] = 100.0
        series = TrainingLoadSeries(end_date=END, values=tuple(values))
        metrics = calculate_fitness_metrics(series)

        # ATL only sees the trailing week: seed 0, then 100 * 0.25, then three decays
        assert metrics.atl == pytest.approx(25.0 * 0.75 ** 3)
        lam = 2 / 43
        assert metrics.ctl == pytest.approx(100 * lam * (1 - lam) ** 3)
        assert metrics.ctl > 0
        assert metrics.tsb == pytest.approx(metrics.ctl - metrics.atl)
        assert metrics.tsb < 0

    def test_recent_strain_sums_trailing_week(self):
        values = [10.0] * 42
        series = TrainingLoadSeries(end_date=END, values=tuple(values))
        metrics = calculate_fitness_metrics(series, strain_days=7)
        assert metrics.recent_strain == pytest.approx(70.0)
        assert metrics.low_confidence is False

    def test_repeated_calls_do_not_drift(self):
        series = TrainingLoadSeries.from_daily_impulses(
            [(END - timedelta(days=i), 50.0 + i) for i in range(0, 42, 3)], END
        )
        first = calculate_fitness_metrics(series)
        second = calculate_fitness_metrics(series)
        assert first.ctl == second.ctl
        assert first.atl == second.atl


class TestRiskZone:
    def test_acwr_zero_ctl(self):
        assert calculate_acwr(50.0, 0.0) is None

    @pytest.mark.parametrize(
        "acwr, zone",
        [(0.5, "undertrained"), (1.0, "optimal"), (1.4, "caution"), (2.0, "danger")],
    )
    def test_zones(self, acwr, zone):
        assert determine_risk_zone(acwr) == zone
