"""Data models for the readiness engine."""

from .activity import (
    PROVIDER_PRIORITY,
    Activity,
    ActivityType,
    Provider,
    to_camel,
)
from .records import (
    BriefRequest,
    BriefResponse,
    DailyRecord,
    TrainingLoadSnapshot,
)
from .scores import (
    Band,
    IllnessIndicator,
    Score,
    ScoreType,
    Severity,
    Signal,
    SignalType,
    StressLevel,
    StressScore,
    band_for_score,
    clamp_score,
    stress_level_for_score,
)
from .signals import DailyMetrics, DailySignalBundle, SleepBaseline, SleepSession

__all__ = [
    "PROVIDER_PRIORITY",
    "Activity",
    "ActivityType",
    "Band",
    "BriefRequest",
    "BriefResponse",
    "DailyMetrics",
    "DailyRecord",
    "DailySignalBundle",
    "IllnessIndicator",
    "Provider",
    "Score",
    "ScoreType",
    "Severity",
    "Signal",
    "SignalType",
    "SleepBaseline",
    "SleepSession",
    "StressLevel",
    "StressScore",
    "TrainingLoadSnapshot",
    "band_for_score",
    "clamp_score",
    "stress_level_for_score",
    "to_camel",
]
