"""Fitness-Fatigue model calculations (CTL, ATL, TSB, ACWR)."""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple


def smoothing_factor(days: int) -> float:
    """Lambda for an N-day exponential average: 2 / (N + 1)."""
    return 2.0 / (days + 1.0)


def exponential_average(values: List[float], days: int) -> float:
    """
    Exponentially weighted average seeded with the first value.

    Uses the formula: EWA_n = value * lambda + EWA_{n-1} * (1 - lambda)
    where lambda = 2 / (days + 1)

    Args:
        values: Daily values, oldest first. Rest days must be present as 0.
        days: Time constant in days (42 for CTL, 7 for ATL)

    Returns:
        The weighted average, 0.0 for an empty series
    """
    if not values:
        return 0.0

    lam = smoothing_factor(days)
    ewa = values[0]
    for value in values[1:]:
        ewa = value * lam + ewa * (1 - lam)
    return ewa


def determine_risk_zone(acwr: Optional[float]) -> str:
    """
    Determine injury risk zone based on ACWR.

    - < 0.8: Undertrained (not enough stimulus)
    - 0.8 - 1.3: Optimal (sweet spot for adaptation)
    - 1.3 - 1.5: Caution (elevated injury risk)
    - > 1.5: Danger (high injury risk)
    """
    if acwr is None:
        return "unknown"
    if acwr < 0.8:
        return "undertrained"
    elif acwr <= 1.3:
        return "optimal"
    elif acwr <= 1.5:
        return "caution"
    else:
        return "danger"


@dataclass(frozen=True)
class TrainingLoadSeries:
    """Contiguous daily training impulse ending on ``end_date``.

    ``values[0]`` is the oldest day and ``values[-1]`` is ``end_date``.
    """

    end_date: date
    values: Tuple[float, ...]

    @classmethod
    def from_daily_impulses(
        cls,
        impulses: Iterable[Tuple[date, float]],
        end_date: date,
        days: int = 42,
    ) -> "TrainingLoadSeries":
        """
        Bucket (day, impulse) pairs into a fixed-length series.

        Same-day impulses are summed. Days without sessions become explicit
        zeros so that they decay the exponential averages. Pairs outside the
        window are ignored.
        """
        start_date = end_date - timedelta(days=days - 1)
        buckets: Dict[date, float] = defaultdict(float)
        for day, impulse in impulses:
            if start_date <= day <= end_date and impulse:
                buckets[day] += impulse

        values = tuple(
            buckets.get(start_date + timedelta(days=offset), 0.0)
            for offset in range(days)
        )
        return cls(end_date=end_date, values=values)

    @property
    def days(self) -> int:
        return len(self.values)

    @property
    def start_date(self) -> date:
        return self.end_date - timedelta(days=self.days - 1)

    @property
    def active_days(self) -> int:
        """Number of days with nonzero impulse."""
        return sum(1 for v in self.values if v > 0)

    def trailing(self, days: int) -> List[float]:
        return list(self.values[-days:]) if days > 0 else []

    def ctl(self) -> float:
        """Chronic load: exponential average over the whole series."""
        return exponential_average(list(self.values), self.days)

    def atl(self, days: int = 7) -> float:
        """Acute load: exponential average over only the trailing ``days``."""
        return exponential_average(self.trailing(days), days)

    def recent_strain(self, days: int = 7) -> float:
        """Sum of impulse over the trailing ``days``."""
        return sum(self.trailing(days))

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "values": list(self.values),
        }


@dataclass
class FitnessMetrics:
    """Fitness-Fatigue snapshot for one day."""

    date: date
    ctl: float  # Chronic Training Load (fitness)
    atl: float  # Acute Training Load (fatigue)
    tsb: float  # Training Stress Balance (form) = CTL - ATL
    acwr: Optional[float]  # Acute:Chronic Workload Ratio
    risk_zone: str
    recent_strain: float = 0.0
    active_days: int = 0
    source: str = "local"  # 'platform' or 'local'
    low_confidence: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "date": self.date.isoformat(),
            "ctl": round(self.ctl, 1),
            "atl": round(self.atl, 1),
            "tsb": round(self.tsb, 1),
            "acwr": round(self.acwr, 2) if self.acwr is not None else None,
            "risk_zone": self.risk_zone,
            "recent_strain": round(self.recent_strain, 1),
            "active_days": self.active_days,
            "source": self.source,
            "low_confidence": self.low_confidence,
        }


def calculate_acwr(atl: float, ctl: float) -> Optional[float]:
    if ctl <= 0:
        return None
    return atl / ctl


def calculate_fitness_metrics(
    series: TrainingLoadSeries,
    atl_days: int = 7,
    strain_days: int = 7,
    min_active_days: int = 7,
) -> FitnessMetrics:
    """
    Compute CTL, ATL, TSB, and ACWR from a daily impulse series.

    The series is always evaluated in full, never incrementally, so repeated
    calls cannot drift. Fewer than ``min_active_days`` training days still
    yields numbers but marks them ``low_confidence``.
    """
    ctl = series.ctl()
    atl = series.atl(atl_days)
    acwr = calculate_acwr(atl, ctl)
    return FitnessMetrics(
        date=series.end_date,
        ctl=ctl,
        atl=atl,
        tsb=ctl - atl,
        acwr=acwr,
        risk_zone=determine_risk_zone(acwr),
        recent_strain=series.recent_strain(strain_days),
        active_days=series.active_days,
        source="local",
        low_confidence=series.active_days < min_active_days,
    )
