"""Personal baseline calculations.

Every score compares today against *your* trailing average rather than a
population norm. Days with no reading are excluded, never counted as zero,
and a metric without enough valid days has no baseline at all (``None``).
"""

from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence

from ..models.signals import DailyMetrics, SleepBaseline

MINUTES_PER_DAY = 1440

# Metrics that accept their own baseline window
BASELINE_METRICS = ("hrv", "rhr", "respiratory_rate", "sleep", "sleep_score", "steps")


@dataclass
class DirectionIndicator:
    """Direction indicator showing change from baseline."""
    direction: str  # 'up', 'down', 'stable'
    change_pct: float
    baseline: float
    current: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PersonalBaselines:
    """Trailing averages as of ``date`` (exclusive)."""
    date: date
    hrv: Optional[float] = None
    rhr: Optional[float] = None
    sleep_seconds: Optional[float] = None
    respiratory_rate: Optional[float] = None
    bedtime_minutes: Optional[float] = None
    wake_minutes: Optional[float] = None
    sleep_score: Optional[float] = None
    steps: Optional[float] = None

    def sleep_baseline(self) -> SleepBaseline:
        return SleepBaseline(
            duration_seconds=self.sleep_seconds,
            bedtime_minutes=self.bedtime_minutes,
            wake_minutes=self.wake_minutes,
            score=self.sleep_score,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


def calculate_rolling_average(
    values: Sequence[Optional[float]],
    min_samples: int = 3,
) -> Optional[float]:
    """Average of the non-missing values.

    Args:
        values: Values for the window (may contain None)
        min_samples: Minimum number of valid values required

    Returns:
        Average rounded to 2 decimals, or None if insufficient data
    """
    valid_values = [v for v in values if v is not None]

    if len(valid_values) < min_samples:
        return None

    return round(sum(valid_values) / len(valid_values), 2)


def calculate_direction(
    current: Optional[float],
    baseline: Optional[float],
    threshold_pct: float = 5.0,
    inverse: bool = False
) -> Optional[DirectionIndicator]:
    """Calculate direction indicator comparing current value to baseline.

    Args:
        current: Current value
        baseline: Baseline value to compare against
        threshold_pct: Percentage change required to register as up/down (default 5%)
        inverse: If True, lower is better (e.g., for RHR, stress)

    Returns:
        DirectionIndicator or None if insufficient data
    """
    if current is None or baseline is None or baseline == 0:
        return None

    change_pct = ((current - baseline) / baseline) * 100

    if abs(change_pct) < threshold_pct:
        direction = 'stable'
    elif change_pct > 0:
        direction = 'down' if inverse else 'up'
    else:
        direction = 'up' if inverse else 'down'

    return DirectionIndicator(
        direction=direction,
        change_pct=round(change_pct, 1),
        baseline=baseline,
        current=current
    )


def percent_change(current: Optional[float], baseline: Optional[float]) -> Optional[float]:
    """Signed percentage deviation of ``current`` from ``baseline``."""
    if current is None or baseline is None or baseline <= 0:
        return None
    return (current - baseline) / baseline * 100


def clock_minutes(moment: datetime) -> float:
    """Minutes after noon, so a night's bedtime and wake time never wrap."""
    minutes = moment.hour * 60 + moment.minute + moment.second / 60
    return (minutes - 720) % MINUTES_PER_DAY


def calculate_baselines(
    history: Sequence[DailyMetrics],
    as_of: date,
    days: int = 7,
    min_samples: int = 3,
    min_sleep_hours: float = 1.0,
    window_days: Optional[Dict[str, int]] = None,
) -> PersonalBaselines:
    """Compute every trailing baseline from daily history.

    Only days in ``[as_of - days, as_of)`` are used, so today's reading is
    never part of the reference it is compared against. Each metric may
    use its own window through ``window_days``; ``sleep`` covers duration,
    bedtime and wake time. Sleep nights shorter than ``min_sleep_hours``
    are treated as missing.

    Args:
        history: Daily samples in any order
        as_of: Day being scored
        days: Window length for metrics without their own entry
        min_samples: Minimum valid days per metric
        min_sleep_hours: Shortest night that counts toward the sleep baseline
        window_days: Per-metric window lengths keyed by BASELINE_METRICS name

    Returns:
        PersonalBaselines with None for every metric lacking history
    """
    windows = window_days or {}

    def window(metric: str) -> List[DailyMetrics]:
        start = as_of - timedelta(days=windows.get(metric, days))
        return [d for d in history if start <= d.date < as_of]

    sleep_window = window("sleep")
    min_sleep_seconds = min_sleep_hours * 3600
    sleep_values = [
        d.sleep_seconds
        if d.sleep_seconds is not None and d.sleep_seconds >= min_sleep_seconds
        else None
        for d in sleep_window
    ]

    def average(attr: str) -> Optional[float]:
        return calculate_rolling_average([getattr(d, attr) for d in window(attr)], min_samples)

    return PersonalBaselines(
        date=as_of,
        hrv=average("hrv"),
        rhr=average("rhr"),
        sleep_seconds=calculate_rolling_average(sleep_values, min_samples),
        respiratory_rate=average("respiratory_rate"),
        bedtime_minutes=calculate_rolling_average(
            [clock_minutes(d.bedtime) if d.bedtime else None for d in sleep_window], min_samples
        ),
        wake_minutes=calculate_rolling_average(
            [clock_minutes(d.wake_time) if d.wake_time else None for d in sleep_window], min_samples
        ),
        sleep_score=average("sleep_score"),
        steps=average("steps"),
    )
