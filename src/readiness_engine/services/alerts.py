"""
Smart stress threshold.

The alert threshold adapts to the athlete: it starts from their own
30-day acute stress distribution (mean + 1.5 sigma) and is nudged up for
fitter athletes, who tolerate more stress before it is a concern.
"""

import logging
import statistics
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from ..config import Settings

# CTL at which the fitness adjustment is zero, and the CTL span for a full +/-10
REFERENCE_CTL = 70.0
CTL_SPAN = 60.0
MAX_FITNESS_ADJUSTMENT = 10.0


@dataclass
class StressAlert:
    """Outcome of comparing today's acute stress with the adaptive threshold."""

    triggered: bool
    acute: int
    threshold: int
    adaptive: bool
    history_size: int

    @property
    def margin(self) -> int:
        return self.acute - self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triggered": self.triggered,
            "acute": self.acute,
            "threshold": self.threshold,
            "adaptive": self.adaptive,
            "history_size": self.history_size,
        }


def fitness_adjustment(ctl: Optional[float]) -> float:
    """Threshold shift in points for the athlete's CTL, within +/-10."""
    if ctl is None:
        return 0.0
    adjustment = (ctl - REFERENCE_CTL) / CTL_SPAN * MAX_FITNESS_ADJUSTMENT
    return max(-MAX_FITNESS_ADJUSTMENT, min(MAX_FITNESS_ADJUSTMENT, adjustment))


class SmartThreshold:
    """Adaptive alert threshold from an athlete's own stress history."""

    def __init__(
        self,
        history_days: int = 30,
        min_history: int = 7,
        default_threshold: float = 50.0,
        sigma_multiplier: float = 1.5,
        floor: float = 40.0,
        ceiling: float = 70.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.history_days = history_days
        self.min_history = min_history
        self.default_threshold = default_threshold
        self.sigma_multiplier = sigma_multiplier
        self.floor = floor
        self.ceiling = ceiling
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, logger: Optional[logging.Logger] = None) -> "SmartThreshold":
        return cls(
            history_days=settings.alert_history_days,
            min_history=settings.alert_min_history,
            default_threshold=settings.alert_default_threshold,
            sigma_multiplier=settings.alert_sigma_multiplier,
            floor=settings.alert_floor,
            ceiling=settings.alert_ceiling,
            logger=logger,
        )

    def is_adaptive(self, history: Sequence[float]) -> bool:
        return len(list(history)[-self.history_days:]) >= self.min_history

    def compute_threshold(self, history: Sequence[float], ctl: Optional[float] = None) -> int:
        """
        Threshold for today's acute stress.

        Args:
            history: Daily acute stress scores, oldest first; only the last
                ``history_days`` are used
            ctl: Current chronic training load

        Returns:
            Integer threshold inside [floor, ceiling], or the default when
            there are fewer than ``min_history`` days
        """
        window = list(history)[-self.history_days:]
        if len(window) < self.min_history:
            self._logger.debug(
                f"Only {len(window)} days of stress history, using default threshold"
            )
            return int(self.default_threshold)

        mean = statistics.fmean(window)
        sigma = statistics.pstdev(window)
        candidate = mean + self.sigma_multiplier * sigma + fitness_adjustment(ctl)
        return int(max(self.floor, min(self.ceiling, candidate)))

    def evaluate(
        self,
        acute: int,
        history: Sequence[float],
        ctl: Optional[float] = None,
    ) -> StressAlert:
        """Decide whether ``acute`` should surface an alert."""
        threshold = self.compute_threshold(history, ctl)
        triggered = acute > threshold
        if triggered:
            self._logger.info(f"Stress alert: acute {acute} exceeds threshold {threshold}")
        return StressAlert(
            triggered=triggered,
            acute=acute,
            threshold=threshold,
            adaptive=self.is_adaptive(history),
            history_size=len(list(history)[-self.history_days:]),
        )

    def should_alert(self, acute: int, history: Sequence[float], ctl: Optional[float] = None) -> bool:
        return self.evaluate(acute, history, ctl).triggered
