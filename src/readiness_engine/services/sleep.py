"""Sleep score: how restorative last night was against personal need and habit."""

import logging
from datetime import date
from typing import Dict, Optional

from ..metrics.baselines import MINUTES_PER_DAY, clock_minutes
from ..models.scores import Score, ScoreType, band_for_score, clamp_score
from ..models.signals import SleepBaseline, SleepSession
from .scoring import floor_at, present_only, weighted_average

SLEEP_WEIGHTS: Dict[str, float] = {
    "performance": 0.30,
    "efficiency": 0.20,
    "stage_quality": 0.30,
    "disturbances": 0.15,
    "timing": 0.05,
}


def performance_score(asleep_seconds: Optional[float], need_seconds: float) -> Optional[int]:
    """Time asleep as a percentage of sleep need, capped at 100."""
    if asleep_seconds is None or need_seconds <= 0:
        return None
    return clamp_score(min(100.0, asleep_seconds / need_seconds * 100))


def efficiency_score(asleep_seconds: Optional[float], in_bed_seconds: Optional[float]) -> Optional[int]:
    if asleep_seconds is None or not in_bed_seconds:
        return None
    return clamp_score(asleep_seconds / in_bed_seconds * 100)


def stage_quality_score(session: SleepSession) -> Optional[int]:
    """Deep + REM share of sleep; 40% or more is ideal."""
    if not session.asleep_seconds:
        return None
    if session.deep_seconds is None and session.rem_seconds is None:
        return None
    restorative = (session.deep_seconds or 0.0) + (session.rem_seconds or 0.0)
    fraction = restorative / session.asleep_seconds

    if fraction >= 0.40:
        return 100
    elif fraction >= 0.30:
        return floor_at(50 + (fraction - 0.30) * 500, 50)
    return floor_at(fraction * 166.67, 0)


def disturbances_score(wake_events: Optional[int]) -> Optional[int]:
    if wake_events is None:
        return None
    if wake_events <= 2:
        return 100
    elif wake_events <= 5:
        return 75
    elif wake_events <= 8:
        return 50
    return 25


def _clock_distance(minutes: float, baseline: float) -> float:
    delta = abs(minutes - baseline) % MINUTES_PER_DAY
    return min(delta, MINUTES_PER_DAY - delta)


def timing_score(session: SleepSession, baseline: SleepBaseline) -> Optional[int]:
    """Consistency of bedtime and wake time with the trailing average."""
    if (
        session.bedtime is None
        or session.wake_time is None
        or baseline.bedtime_minutes is None
        or baseline.wake_minutes is None
    ):
        return None

    bed_dev = _clock_distance(clock_minutes(session.bedtime), baseline.bedtime_minutes)
    wake_dev = _clock_distance(clock_minutes(session.wake_time), baseline.wake_minutes)
    avg_dev = (bed_dev + wake_dev) / 2

    if avg_dev <= 30:
        return 100
    elif avg_dev <= 60:
        return 75
    elif avg_dev <= 90:
        return 50
    return 25


class SleepScorer:
    """Computes the nightly sleep score from one SleepSession."""

    def __init__(self, sleep_need_hours: float = 8.0, logger: Optional[logging.Logger] = None):
        self.sleep_need_seconds = sleep_need_hours * 3600
        self._logger = logger or logging.getLogger(__name__)

    def sub_scores(self, session: SleepSession, baseline: SleepBaseline) -> Dict[str, Optional[int]]:
        return {
            "performance": performance_score(session.asleep_seconds, self.sleep_need_seconds),
            "efficiency": efficiency_score(session.asleep_seconds, session.in_bed_seconds),
            "stage_quality": stage_quality_score(session),
            "disturbances": disturbances_score(session.wake_events),
            "timing": timing_score(session, baseline),
        }

    def score(
        self,
        session: Optional[SleepSession],
        baseline: Optional[SleepBaseline] = None,
        day: Optional[date] = None,
    ) -> Optional[Score]:
        """
        Score one night.

        Returns:
            The sleep Score, or None when the night has no usable data
        """
        if session is None:
            return None

        subs = self.sub_scores(session, baseline or SleepBaseline())
        aggregate = weighted_average(subs, SLEEP_WEIGHTS)
        if aggregate is None:
            self._logger.info(f"No sleep sub-scores available for {day}")
            return None

        value = clamp_score(aggregate)
        present = present_only(subs)
        self._logger.debug(f"Sleep score {value} from {present}")
        return Score(
            score_type=ScoreType.SLEEP,
            value=value,
            band=band_for_score(value),
            sub_scores=present,
            date=day,
        )
