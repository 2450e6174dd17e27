"""Configuration settings for the readiness engine."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .metrics.baselines import BASELINE_METRICS

logger = logging.getLogger(__name__)

PACKAGE_ROOT = Path(__file__).parent

DEFAULT_SLEEP_NEED_HOURS = 8.0
MIN_SLEEP_NEED_HOURS = 4.0
MAX_SLEEP_NEED_HOURS = 12.0


class StressWeights(BaseModel):
    """Maximum points each stress component can contribute to acute stress."""

    hrv: float = 15.0
    rhr: float = 15.0
    recovery_deficit: float = 30.0
    sleep_disruption: float = 20.0
    training_load: float = 30.0


class CacheTTLs(BaseModel):
    """Time-to-live in seconds for each cache kind."""

    activities: int = 3600
    health_metrics: int = 300
    wellness: int = 600
    baselines: int = 7200
    daily_scores: int = 86400
    streams: int = 604800
    illness: int = 3600


class Settings(BaseSettings):
    """Engine settings loaded from environment variables (READINESS_*)."""

    model_config = SettingsConfigDict(
        env_prefix="READINESS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Activity deduplication
    dedup_time_tolerance_minutes: float = 90.0
    dedup_duration_tolerance: float = 0.10
    dedup_distance_tolerance: float = 0.10

    # Training load
    ctl_days: int = 42
    atl_days: int = 7
    strain_days: int = 7
    low_confidence_active_days: int = 7

    # Baselines
    baseline_days: int = 7
    baseline_min_samples: int = 3
    # Per-metric overrides of baseline_days, e.g. {"hrv": 14}
    baseline_window_days: Dict[str, int] = Field(default_factory=dict)
    min_sleep_hours_for_baseline: float = 1.0

    # Scoring
    sleep_need_hours: float = DEFAULT_SLEEP_NEED_HOURS
    stress_weights: StressWeights = Field(default_factory=StressWeights)
    stress_history_days: int = 7

    # Smart threshold alerting
    alert_history_days: int = 30
    alert_min_history: int = 7
    alert_default_threshold: float = 50.0
    alert_sigma_multiplier: float = 1.5
    alert_floor: float = 40.0
    alert_ceiling: float = 70.0

    # Scheduling
    calculation_timeout_seconds: float = 8.0
    illness_min_interval_seconds: float = 3600.0

    # Caching
    cache_ttls: CacheTTLs = Field(default_factory=CacheTTLs)

    # Providers
    intervals_api_key: str = ""
    intervals_athlete_id: str = ""
    strava_access_token: str = ""

    # Storage
    database_path: Optional[Path] = None

    log_level: str = "INFO"

    @field_validator("sleep_need_hours")
    @classmethod
    def clamp_sleep_need(cls, value: float) -> float:
        """Replace an implausible sleep-need target with the default."""
        if not MIN_SLEEP_NEED_HOURS <= value <= MAX_SLEEP_NEED_HOURS:
            logger.warning(
                f"Sleep need of {value}h is outside "
                f"{MIN_SLEEP_NEED_HOURS}-{MAX_SLEEP_NEED_HOURS}h, "
                f"using {DEFAULT_SLEEP_NEED_HOURS}h"
            )
            return DEFAULT_SLEEP_NEED_HOURS
        return value

    @field_validator("ctl_days", "atl_days", "strain_days", "baseline_days", "baseline_min_samples")
    @classmethod
    def require_positive(cls, value: int, info: ValidationInfo) -> int:
        if value <= 0:
            raise ConfigurationError(f"{info.field_name} must be positive, got {value}", info.field_name)
        return value

    @field_validator("baseline_window_days")
    @classmethod
    def check_baseline_windows(cls, value: Dict[str, int]) -> Dict[str, int]:
        for metric, days in value.items():
            if metric not in BASELINE_METRICS:
                raise ConfigurationError(
                    f"Unknown baseline metric {metric!r}, expected one of {', '.join(BASELINE_METRICS)}",
                    "baseline_window_days",
                )
            if days <= 0:
                raise ConfigurationError(
                    f"Baseline window for {metric} must be positive, got {days}", "baseline_window_days"
                )
        return value

    @model_validator(mode="after")
    def check_alert_bounds(self) -> "Settings":
        if self.alert_floor > self.alert_ceiling:
            raise ConfigurationError(
                f"alert_floor ({self.alert_floor}) is above alert_ceiling ({self.alert_ceiling})",
                "alert_floor",
            )
        return self

    def baseline_window(self, metric: str) -> int:
        """Baseline window in days for one metric."""
        return self.baseline_window_days.get(metric, self.baseline_days)

    @property
    def longest_baseline_window(self) -> int:
        return max([self.baseline_days, *self.baseline_window_days.values()])

    def model_post_init(self, __context) -> None:
        """Set default database path after initialization."""
        if self.database_path is None:
            self.database_path = Path.cwd() / "readiness.db"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
