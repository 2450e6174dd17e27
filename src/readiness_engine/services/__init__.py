"""
Services for the readiness engine.

This module contains the business logic layer:
- Activity deduplication across providers
- Training load policy (coaching platform first, local fallback)
- Sleep, recovery and stress scoring
- Illness detection with a recompute cadence
- Smart stress threshold alerting
- The daily calculation pass that ties them together
"""

from .alerts import SmartThreshold, StressAlert
from .base import BaseService
from .daily_scores import DailyScores, DailyScoreService, build_brief_request
from .deduplication import (
    ActivityDeduplicator,
    CanonicalActivitySet,
    DataType,
    preferred_source,
    select_best_activity,
)
from .illness import (
    AnalysisState,
    IllnessAnalysis,
    IllnessDetectionService,
    IllnessDetector,
)
from .recovery import RecoveryScorer
from .sleep import SleepScorer
from .stress import StressScorer, chronic_stress
from .training_load import TrainingLoadEngine

__all__ = [
    "ActivityDeduplicator",
    "AnalysisState",
    "BaseService",
    "CanonicalActivitySet",
    "DailyScores",
    "DailyScoreService",
    "DataType",
    "IllnessAnalysis",
    "IllnessDetectionService",
    "IllnessDetector",
    "RecoveryScorer",
    "SleepScorer",
    "SmartThreshold",
    "StressAlert",
    "StressScorer",
    "TrainingLoadEngine",
    "build_brief_request",
    "chronic_stress",
    "preferred_source",
    "select_best_activity",
]
