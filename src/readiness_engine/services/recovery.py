"""
Recovery score.

Combines five baseline-relative sub-scores:
- HRV vs 7-day average (30%)
- Resting HR vs 7-day average (20%)
- Sleep (30%): the night's sleep score, else duration vs baseline
- Respiratory rate stability (10%)
- Form: ATL/CTL balance less a recent-strain penalty (10%)

Sub-scores without inputs are left out and the remaining weights are
rescaled, so losing one source lowers precision, not the score.
"""

import logging
from typing import Dict, Optional

from ..metrics.baselines import percent_change
from ..models.scores import IllnessIndicator, Score, ScoreType, band_for_score, clamp_score
from ..models.signals import DailySignalBundle
from .scoring import floor_at, present_only, weighted_average

RECOVERY_WEIGHTS: Dict[str, float] = {
    "hrv": 0.30,
    "rhr": 0.20,
    "sleep": 0.30,
    "respiratory": 0.10,
    "form": 0.10,
}

MAX_OVERNIGHT_PENALTY = 15.0


def hrv_score(hrv: Optional[float], baseline: Optional[float]) -> Optional[int]:
    """100 at or above baseline, falling progressively faster below it."""
    if hrv is None or baseline is None or baseline <= 0:
        return None
    change = (hrv - baseline) / baseline
    if change >= 0:
        return 100

    drop = -change
    if drop <= 0.10:
        return floor_at(100 - drop * 150, 85)
    elif drop <= 0.20:
        return floor_at(85 - (drop - 0.10) * 250, 60)
    elif drop <= 0.35:
        return floor_at(60 - (drop - 0.20) * 200, 30)
    return floor_at(30 - (drop - 0.35) * 60, 0)


def rhr_score(rhr: Optional[float], baseline: Optional[float]) -> Optional[int]:
    """100 at or below baseline, falling as resting HR rises."""
    if rhr is None or baseline is None or baseline <= 0:
        return None
    rise = (rhr - baseline) / baseline
    if rise <= 0:
        return 100

    if rise <= 0.08:
        return floor_at(100 - rise * 150, 88)
    elif rise <= 0.15:
        return floor_at(88 - (rise - 0.08) * 300, 67)
    elif rise <= 0.25:
        return floor_at(67 - (rise - 0.15) * 300, 37)
    return floor_at(37 - (rise - 0.25) * 100, 0)


def sleep_component(bundle: DailySignalBundle) -> Optional[int]:
    if bundle.sleep_score is not None:
        return bundle.sleep_score
    duration = bundle.sleep_duration_seconds
    baseline = bundle.sleep_baseline.duration_seconds
    if duration is None or not baseline:
        return None
    return clamp_score(min(100.0, duration / baseline * 100))


def respiratory_score(rate: Optional[float], baseline: Optional[float]) -> Optional[int]:
    """Stability of breathing rate; any direction of change costs points."""
    if rate is None or baseline is None or baseline <= 0:
        return None
    change = abs(rate - baseline) / baseline
    if change <= 0.05:
        return 100
    elif change <= 0.15:
        return floor_at(100 - (change - 0.05) * 500, 50)
    return floor_at(50 - (change - 0.15) * 100, 0)


def strain_penalty(strain: Optional[float]) -> float:
    """Points removed from form for recent training stress."""
    if strain is None or strain < 50:
        return 0.0
    elif strain < 100:
        return (strain - 50) * 0.2
    elif strain < 200:
        return 10 + (strain - 100) * 0.15
    return min(40.0, 25 + (strain - 200) * 0.1)


def form_score(atl: Optional[float], ctl: Optional[float], recent_strain: Optional[float]) -> Optional[int]:
    if atl is None or ctl is None or ctl <= 0:
        return None
    ratio = atl / ctl
    if ratio < 1.0:
        base = 100
    elif ratio < 1.5:
        base = floor_at(100 - (ratio - 1.0) * 100, 50)
    else:
        base = floor_at(50 - (ratio - 1.5) * 50, 0)
    return max(0, int(base - strain_penalty(recent_strain)))


def overnight_penalty(
    bundle: DailySignalBundle,
    hrv_sub: Optional[int],
    rhr_sub: Optional[int],
    sleep_sub: Optional[int],
) -> float:
    """
    Extra deduction when overnight HRV collapses, compounded by poor sleep.

    Requires a sleep score; without one the pattern cannot be told apart
    from ordinary day-to-day variation.
    """
    if bundle.sleep_score is None or sleep_sub is None:
        return 0.0
    change = percent_change(bundle.overnight_hrv or bundle.hrv, bundle.hrv_baseline)
    if change is None:
        return 0.0

    if change < -35:
        penalty = 12.0
    elif change < -25:
        penalty = 8.0
    elif change < -20:
        penalty = 5.0
    elif hrv_sub is not None and hrv_sub < 40:
        penalty = 3.0
    else:
        return 0.0

    if sleep_sub >= 80:
        penalty *= 0.70
    elif sleep_sub >= 65:
        penalty *= 0.85
    elif sleep_sub < 40:
        penalty += 3.0

    if rhr_sub is not None and rhr_sub < 30:
        penalty += 2.0

    return min(penalty, MAX_OVERNIGHT_PENALTY)


class RecoveryScorer:
    """Computes the daily recovery score from a DailySignalBundle."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger(__name__)

    def sub_scores(self, bundle: DailySignalBundle) -> Dict[str, Optional[int]]:
        return {
            "hrv": hrv_score(bundle.hrv, bundle.hrv_baseline),
            "rhr": rhr_score(bundle.rhr, bundle.rhr_baseline),
            "sleep": sleep_component(bundle),
            "respiratory": respiratory_score(bundle.respiratory_rate, bundle.respiratory_baseline),
            "form": form_score(bundle.atl, bundle.ctl, bundle.recent_strain),
        }

    def score(
        self,
        bundle: DailySignalBundle,
        illness: Optional[IllnessIndicator] = None,
    ) -> Optional[Score]:
        """
        Score recovery for ``bundle.date``.

        Args:
            bundle: Fused inputs for the day
            illness: Current illness indicator; when present the overnight
                penalty is skipped because the same deviations are already
                explained by illness

        Returns:
            The recovery Score, or None when no sub-score has inputs
        """
        subs = self.sub_scores(bundle)
        aggregate = weighted_average(subs, RECOVERY_WEIGHTS)
        if aggregate is None:
            self._logger.info(f"No recovery inputs available for {bundle.date}")
            return None

        if illness is None:
            penalty = overnight_penalty(bundle, subs["hrv"], subs["rhr"], subs["sleep"])
            if penalty:
                self._logger.debug(f"Overnight HRV penalty of {penalty:.1f} applied")
                aggregate -= penalty

        value = clamp_score(aggregate)
        return Score(
            score_type=ScoreType.RECOVERY,
            value=value,
            band=band_for_score(value),
            sub_scores=present_only(subs),
            date=bundle.date,
        )
