"""Training load and baseline calculations."""

from .baselines import (
    PersonalBaselines,
    calculate_baselines,
    calculate_direction,
    calculate_rolling_average,
    clock_minutes,
    percent_change,
)
from .fitness import (
    FitnessMetrics,
    TrainingLoadSeries,
    calculate_acwr,
    calculate_fitness_metrics,
    determine_risk_zone,
    exponential_average,
    smoothing_factor,
)
from .load import HeartRateProfile, calculate_hrss, calculate_trimp, session_impulse

__all__ = [
    "FitnessMetrics",
    "HeartRateProfile",
    "PersonalBaselines",
    "TrainingLoadSeries",
    "calculate_acwr",
    "calculate_baselines",
    "calculate_direction",
    "calculate_fitness_metrics",
    "calculate_hrss",
    "calculate_rolling_average",
    "calculate_trimp",
    "clock_minutes",
    "determine_risk_zone",
    "exponential_average",
    "percent_change",
    "session_impulse",
    "smoothing_factor",
]
