"""
Physiological stress score.

Acute stress adds up points from five components, each capped:
- HRV below baseline
- Resting HR above baseline
- Recovery deficit (low recovery score)
- Sleep disruption (low sleep score, else wake events)
- Training load (ATL/CTL ratio)

Caps come from ``Settings.stress_weights``. The curves below are written
against the default caps and scaled proportionally when a cap is tuned.
Chronic stress is the 7-day rolling mean of acute stress including today.
"""

import logging
from datetime import date
from typing import Dict, Optional, Sequence

from ..config import StressWeights
from ..models.scores import StressScore, clamp_score, stress_level_for_score
from ..models.signals import DailySignalBundle
from .sleep import disturbances_score

DEFAULT_WEIGHTS = StressWeights()


def _scaled(points: float, cap: float, default_cap: float) -> float:
    if default_cap <= 0:
        return 0.0
    return min(cap, points * cap / default_cap)


def hrv_stress(hrv: Optional[float], baseline: Optional[float], cap: float = DEFAULT_WEIGHTS.hrv) -> Optional[float]:
    """0.3 points per percent of HRV below baseline."""
    if hrv is None or baseline is None or baseline <= 0:
        return None
    deviation = (baseline - hrv) / baseline * 100
    if deviation <= 0:
        return 0.0
    return _scaled(deviation * 0.3, cap, DEFAULT_WEIGHTS.hrv)


def rhr_stress(rhr: Optional[float], baseline: Optional[float], cap: float = DEFAULT_WEIGHTS.rhr) -> Optional[float]:
    """0.5 points per percent of resting HR above baseline."""
    if rhr is None or baseline is None or baseline <= 0:
        return None
    deviation = (rhr - baseline) / baseline * 100
    if deviation <= 0:
        return 0.0
    return _scaled(deviation * 0.5, cap, DEFAULT_WEIGHTS.rhr)


def recovery_deficit_stress(
    recovery: Optional[int],
    cap: float = DEFAULT_WEIGHTS.recovery_deficit,
) -> Optional[float]:
    if recovery is None:
        return None
    return _scaled((100 - recovery) * 0.3, cap, DEFAULT_WEIGHTS.recovery_deficit)


def sleep_disruption_stress(
    sleep_score: Optional[int],
    wake_events: Optional[int] = None,
    cap: float = DEFAULT_WEIGHTS.sleep_disruption,
) -> Optional[float]:
    """Points from a low sleep score; wake events stand in when there is no score."""
    quality = sleep_score if sleep_score is not None else disturbances_score(wake_events)
    if quality is None:
        return None
    return _scaled((100 - quality) * 0.2, cap, DEFAULT_WEIGHTS.sleep_disruption)


def training_load_stress(
    atl: Optional[float],
    ctl: Optional[float],
    cap: float = DEFAULT_WEIGHTS.training_load,
) -> Optional[float]:
    """
    Points from the acute:chronic load ratio.

    Below 0.8 there is no penalty, 0.8-1.0 ramps gently, 1.0-1.3 ramps
    more steeply, and 1.3 or above is a flat overreaching penalty.
    """
    if atl is None or ctl is None or ctl <= 0:
        return None
    ratio = atl / ctl
    if ratio < 0.8:
        points = 0.0
    elif ratio < 1.0:
        points = (ratio - 0.8) * 75
    elif ratio < 1.3:
        points = 15 + (ratio - 1.0) * 50
    else:
        points = 30.0
    return _scaled(points, cap, DEFAULT_WEIGHTS.training_load)


def chronic_stress(acute: int, history: Sequence[float], window: int = 7) -> int:
    """
    Rolling mean of acute stress over ``window`` days including today.

    Args:
        acute: Today's acute stress
        history: Prior daily acute scores, oldest first, excluding today
        window: Days in the rolling mean

    Returns:
        Chronic stress as an integer in [0, 100]
    """
    recent = list(history)[-(window - 1):] if window > 1 else []
    values = recent + [acute]
    return clamp_score(sum(values) / len(values))


class StressScorer:
    """Computes acute and chronic stress from a scored day."""

    def __init__(
        self,
        weights: Optional[StressWeights] = None,
        history_days: int = 7,
        logger: Optional[logging.Logger] = None,
    ):
        self.weights = weights or StressWeights()
        self.history_days = history_days
        self._logger = logger or logging.getLogger(__name__)

    def _caps(self) -> Dict[str, float]:
        return {
            "hrv": self.weights.hrv,
            "rhr": self.weights.rhr,
            "recovery_deficit": self.weights.recovery_deficit,
            "sleep_disruption": self.weights.sleep_disruption,
            "training_load": self.weights.training_load,
        }

    def contributions(
        self,
        bundle: DailySignalBundle,
        recovery_score: Optional[int] = None,
    ) -> Dict[str, Optional[float]]:
        """Raw points per component; None where the inputs are missing."""
        wake_events = bundle.sleep.wake_events if bundle.sleep else None
        return {
            "hrv": hrv_stress(bundle.hrv, bundle.hrv_baseline, self.weights.hrv),
            "rhr": rhr_stress(bundle.rhr, bundle.rhr_baseline, self.weights.rhr),
            "recovery_deficit": recovery_deficit_stress(recovery_score, self.weights.recovery_deficit),
            "sleep_disruption": sleep_disruption_stress(
                bundle.sleep_score, wake_events, self.weights.sleep_disruption
            ),
            "training_load": training_load_stress(bundle.atl, bundle.ctl, self.weights.training_load),
        }

    def score(
        self,
        bundle: DailySignalBundle,
        recovery_score: Optional[int] = None,
        history: Sequence[float] = (),
        day: Optional[date] = None,
    ) -> Optional[StressScore]:
        """
        Score stress for one day.

        Args:
            bundle: Fused inputs for the day
            recovery_score: Today's recovery score, if one was computed
            history: Prior daily acute stress scores, oldest first
            day: Date to stamp on the result (defaults to ``bundle.date``)

        Returns:
            StressScore, or None when no component has inputs
        """
        points = self.contributions(bundle, recovery_score)
        present = {k: v for k, v in points.items() if v is not None}
        if not present:
            self._logger.info(f"No stress inputs available for {bundle.date}")
            return None

        caps = self._caps()
        sub_scores = {
            k: clamp_score(v / caps[k] * 100) if caps[k] > 0 else 0
            for k, v in present.items()
        }

        acute = clamp_score(min(100.0, sum(present.values())))
        chronic = chronic_stress(acute, history, self.history_days)
        load_ratio = bundle.atl / bundle.ctl if bundle.atl is not None and bundle.ctl else None

        self._logger.debug(f"Stress acute={acute} chronic={chronic} from {present}")
        return StressScore(
            acute=acute,
            chronic=chronic,
            level=stress_level_for_score(acute),
            sub_scores=sub_scores,
            contributions=present,
            load_ratio=load_ratio,
            date=day or bundle.date,
        )
