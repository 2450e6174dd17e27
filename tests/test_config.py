"""Tests for settings."""

from pathlib import Path

import pytest

from readiness_engine.config import DEFAULT_SLEEP_NEED_HOURS, Settings, get_settings
from readiness_engine.exceptions import ConfigurationError


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.dedup_time_tolerance_minutes == 90.0
        assert settings.ctl_days == 42
        assert settings.atl_days == 7
        assert settings.stress_weights.training_load == 30.0
        assert settings.cache_ttls.activities == 3600
        assert settings.database_path == Path.cwd() / "readiness.db"

    def test_sleep_need_outside_range_uses_default(self):
        assert Settings(_env_file=None, sleep_need_hours=2.0).sleep_need_hours == DEFAULT_SLEEP_NEED_HOURS
        assert Settings(_env_file=None, sleep_need_hours=15.0).sleep_need_hours == DEFAULT_SLEEP_NEED_HOURS
        assert Settings(_env_file=None, sleep_need_hours=7.5).sleep_need_hours == 7.5

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("READINESS_CALCULATION_TIMEOUT_SECONDS", "3")
        monkeypatch.setenv("READINESS_STRESS_WEIGHTS__HRV", "20")
        settings = Settings(_env_file=None)
        assert settings.calculation_timeout_seconds == 3.0
        assert settings.stress_weights.hrv == 20.0

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()
        get_settings.cache_clear()

    def test_per_metric_baseline_windows(self):
        settings = Settings(_env_file=None, baseline_window_days={"hrv": 14})
        assert settings.baseline_window("hrv") == 14
        assert settings.baseline_window("rhr") == settings.baseline_days
        assert settings.longest_baseline_window == 14


class TestValidation:
    @pytest.mark.parametrize("field", ["ctl_days", "atl_days", "baseline_days", "baseline_min_samples"])
    def test_non_positive_window(self, field):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, **{field: 0})
        assert exc_info.value.details["setting"] == field

    def test_unknown_baseline_metric(self):
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, baseline_window_days={"vo2max": 14})

    def test_non_positive_baseline_metric_window(self):
        with pytest.raises(ConfigurationError):
            Settings(_env_file=None, baseline_window_days={"hrv": -3})

    def test_alert_floor_above_ceiling(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, alert_floor=80, alert_ceiling=70)
        assert exc_info.value.details["setting"] == "alert_floor"
