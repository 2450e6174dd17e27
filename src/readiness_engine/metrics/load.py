"""Per-session training impulse (provider TSS, HRSS, TRIMP)."""

import math
from dataclasses import dataclass
from typing import Optional

from ..models.activity import Activity


@dataclass(frozen=True)
class HeartRateProfile:
    """Athlete heart-rate anchors used by the HR-based impulse formulas."""

    rest_hr: float = 60.0
    max_hr: float = 190.0
    threshold_hr: Optional[float] = None
    sex: str = "male"

    @property
    def effective_threshold_hr(self) -> float:
        if self.threshold_hr:
            return self.threshold_hr
        # Lactate threshold sits near 88% of HR reserve for most athletes
        return self.rest_hr + 0.88 * (self.max_hr - self.rest_hr)


def calculate_hrss(
    duration_min: float,
    avg_hr: float,
    threshold_hr: float,
    max_hr: float,
    rest_hr: float,
) -> float:
    """
    Heart Rate Stress Score - TSS equivalent for HR-based training.

    Args:
        duration_min: Duration of activity in minutes
        avg_hr: Average heart rate during activity
        threshold_hr: Lactate threshold heart rate
        max_hr: Maximum heart rate
        rest_hr: Resting heart rate

    Returns:
        HRSS value (similar scale to TSS: 100 = 1 hour at threshold)
    """
    hr_reserve = max_hr - rest_hr
    if hr_reserve <= 0 or duration_min <= 0:
        return 0.0

    normalized_hr = (avg_hr - rest_hr) / hr_reserve
    normalized_hr = max(0.0, min(1.0, normalized_hr))

    threshold_reserve_ratio = (threshold_hr - rest_hr) / hr_reserve
    if threshold_reserve_ratio <= 0:
        threshold_reserve_ratio = 0.85

    intensity_factor = normalized_hr / threshold_reserve_ratio

    # ~100 for one hour at threshold
    hrss = (duration_min * (intensity_factor ** 2)) / 60 * 100
    return round(hrss, 1)


def calculate_trimp(
    duration_min: float,
    avg_hr: float,
    rest_hr: float,
    max_hr: float,
    sex: str = "male",
) -> float:
    """
    Training Impulse using Banister's exponential formula.

    Args:
        duration_min: Duration of activity in minutes
        avg_hr: Average heart rate during activity
        rest_hr: Resting heart rate
        max_hr: Maximum heart rate
        sex: 'male' or 'female' (different weighting coefficients)

    Returns:
        TRIMP value (arbitrary units, typical session: 50-150)
    """
    hr_reserve = max_hr - rest_hr
    if hr_reserve <= 0 or duration_min <= 0:
        return 0.0

    delta_hr = (avg_hr - rest_hr) / hr_reserve
    delta_hr = max(0.0, min(1.0, delta_hr))

    if sex.lower() == "female":
        a, b = 0.86, 1.67
    else:
        a, b = 0.64, 1.92

    trimp = duration_min * delta_hr * a * math.exp(b * delta_hr)
    return round(trimp, 1)


def session_impulse(
    activity: Activity,
    profile: Optional[HeartRateProfile] = None,
    method: str = "hrss",
) -> Optional[float]:
    """
    Reduce one session to a TSS-like training impulse.

    The provider's own training-stress figure wins. Without it, heart-rate
    data is converted to HRSS (the default) so locally derived load sits on
    the same scale as provider TSS, or to Banister TRIMP with
    ``method="trimp"``.

    Returns:
        The impulse, or None when the session carries neither a provider
        value nor both duration and average heart rate.
    """
    if activity.training_stress is not None:
        return activity.training_stress

    if activity.duration_seconds is None or activity.avg_hr is None:
        return None

    profile = profile or HeartRateProfile()
    max_hr = max(profile.max_hr, activity.max_hr or 0.0)
    duration_min = activity.duration_seconds / 60

    if method == "trimp":
        return calculate_trimp(
            duration_min=duration_min,
            avg_hr=activity.avg_hr,
            rest_hr=profile.rest_hr,
            max_hr=max_hr,
            sex=profile.sex,
        )

    return calculate_hrss(
        duration_min=duration_min,
        avg_hr=activity.avg_hr,
        threshold_hr=profile.effective_threshold_hr,
        max_hr=max_hr,
        rest_hr=profile.rest_hr,
    )
