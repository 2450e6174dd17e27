"""Computed score and indicator types."""

from dataclasses import dataclass, field
from datetime import date as date_type, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ScoreType(str, Enum):
    RECOVERY = "recovery"
    SLEEP = "sleep"
    STRESS = "stress"


class Band(str, Enum):
    """Qualitative tier of a recovery or sleep score."""

    OPTIMAL = "optimal"  # >= 80
    GOOD = "good"        # 60-79
    FAIR = "fair"        # 40-59
    LOW = "low"          # < 40


class StressLevel(str, Enum):
    """Qualitative tier of an acute stress score (higher is worse)."""

    LOW = "low"            # < 40
    MODERATE = "moderate"  # 40-59
    ELEVATED = "elevated"  # 60-79
    HIGH = "high"          # >= 80


def band_for_score(score: float) -> Band:
    """Map a 0-100 score to its band."""
    if score >= 80:
        return Band.OPTIMAL
    elif score >= 60:
        return Band.GOOD
    elif score >= 40:
        return Band.FAIR
    return Band.LOW


def stress_level_for_score(score: float) -> StressLevel:
    if score >= 80:
        return StressLevel.HIGH
    elif score >= 60:
        return StressLevel.ELEVATED
    elif score >= 40:
        return StressLevel.MODERATE
    return StressLevel.LOW


def clamp_score(value: float) -> int:
    """Truncate to an integer inside [0, 100]."""
    return max(0, min(100, int(value)))


@dataclass
class Score:
    """A 0-100 score with its labelled sub-score breakdown.

    Absent inputs leave their sub-score out of ``sub_scores`` entirely so a
    consumer can tell "not measured" apart from "measured as zero".
    """

    score_type: ScoreType
    value: int
    band: Band
    sub_scores: Dict[str, int] = field(default_factory=dict)
    date: Optional[date_type] = None
    calculated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score_type": self.score_type.value,
            "value": self.value,
            "band": self.band.value,
            "sub_scores": dict(self.sub_scores),
            "date": self.date.isoformat() if self.date else None,
            "calculated_at": self.calculated_at.isoformat(),
        }


@dataclass
class StressScore:
    """Acute and chronic stress with the points each component added."""

    acute: int
    chronic: int
    level: StressLevel
    sub_scores: Dict[str, int] = field(default_factory=dict)
    contributions: Dict[str, float] = field(default_factory=dict)
    load_ratio: Optional[float] = None
    date: Optional[date_type] = None
    calculated_at: datetime = field(default_factory=datetime.now)

    @property
    def value(self) -> int:
        return self.acute

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score_type": ScoreType.STRESS.value,
            "acute": self.acute,
            "chronic": self.chronic,
            "level": self.level.value,
            "sub_scores": dict(self.sub_scores),
            "contributions": {k: round(v, 1) for k, v in self.contributions.items()},
            "load_ratio": round(self.load_ratio, 2) if self.load_ratio is not None else None,
            "date": self.date.isoformat() if self.date else None,
            "calculated_at": self.calculated_at.isoformat(),
        }


# =============================================================================
# Illness indicator
# =============================================================================

class Severity(str, Enum):
    NONE = "none"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class SignalType(str, Enum):
    """Physiological deviations that can point to illness."""

    HRV_DROP = "hrv_drop"
    HRV_SPIKE = "hrv_spike"
    ELEVATED_RHR = "elevated_rhr"
    SLEEP_DISRUPTION = "sleep_disruption"
    RESPIRATORY_CHANGE = "respiratory_change"
    ACTIVITY_DROP = "activity_drop"


@dataclass(frozen=True)
class Signal:
    """One deviation that crossed its detection threshold."""

    type: SignalType
    deviation: float  # percent from baseline, signed
    value: float
    baseline: Optional[float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "deviation": round(self.deviation, 1),
            "value": self.value,
            "baseline": self.baseline,
        }


@dataclass
class IllnessIndicator:
    """Severity-graded evidence that the body is under unusual strain."""

    date: date_type
    severity: Severity
    confidence: float
    signals: List[Signal] = field(default_factory=list)
    recommendation: str = ""

    @property
    def primary_signal(self) -> Optional[Signal]:
        """Signal with the largest absolute deviation."""
        if not self.signals:
            return None
        return max(self.signals, key=lambda s: abs(s.deviation))

    @property
    def is_significant(self) -> bool:
        return self.severity in (Severity.MODERATE, Severity.SEVERE) and self.confidence >= 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "severity": self.severity.value,
            "confidence": round(self.confidence, 2),
            "signals": [s.to_dict() for s in self.signals],
            "recommendation": self.recommendation,
        }
