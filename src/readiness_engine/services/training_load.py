"""
Training load engine.

Chooses between the coaching platform's own CTL/ATL and a local
calculation from the canonical activity list:
- If the most recent coaching-platform activity carries CTL and ATL,
  those values are authoritative
- Otherwise every session is reduced to an impulse, bucketed into a
  42-day daily series, and CTL/ATL/TSB are computed from it
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import Settings
from ..exceptions import ConfigurationError
from ..metrics.fitness import (
    FitnessMetrics,
    TrainingLoadSeries,
    calculate_acwr,
    calculate_fitness_metrics,
    determine_risk_zone,
)
from ..metrics.load import HeartRateProfile, session_impulse
from ..models.activity import Activity, Provider
from .base import BaseService


class TrainingLoadEngine(BaseService):
    """Computes the daily training-load snapshot."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        hr_profile: Optional[HeartRateProfile] = None,
        impulse_method: str = "hrss",
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(settings=settings, logger=logger)
        if self.settings.atl_days > self.settings.ctl_days:
            raise ConfigurationError(
                f"ATL window ({self.settings.atl_days}d) cannot exceed CTL window ({self.settings.ctl_days}d)",
                setting="atl_days",
            )
        self.hr_profile = hr_profile or HeartRateProfile()
        self.impulse_method = impulse_method

    def daily_impulses(self, activities: Iterable[Activity]) -> List[Tuple[date, float]]:
        """Reduce each session to (day, impulse); sessions without one are skipped."""
        impulses = []
        for activity in activities:
            impulse = session_impulse(activity, self.hr_profile, self.impulse_method)
            if impulse is None:
                self._logger.debug(f"No impulse for activity {activity.provider.value}:{activity.id}")
                continue
            impulses.append((activity.start_time.date(), impulse))
        return impulses

    def build_series(self, activities: Iterable[Activity], end_date: date) -> TrainingLoadSeries:
        return TrainingLoadSeries.from_daily_impulses(
            self.daily_impulses(activities),
            end_date=end_date,
            days=self.settings.ctl_days,
        )

    def calculate_local(self, activities: Iterable[Activity], end_date: date) -> FitnessMetrics:
        """CTL/ATL/TSB from a freshly built series."""
        series = self.build_series(activities, end_date)
        metrics = calculate_fitness_metrics(
            series,
            atl_days=self.settings.atl_days,
            strain_days=self.settings.strain_days,
            min_active_days=self.settings.low_confidence_active_days,
        )
        if metrics.low_confidence:
            self._logger.info(
                f"Training load for {end_date} is low confidence "
                f"({metrics.active_days} active days)"
            )
        return metrics

    @staticmethod
    def platform_snapshot(activities: Sequence[Activity], end_date: date) -> Optional[Activity]:
        """Most recent coaching-platform activity that carries CTL and ATL."""
        candidates = [
            a for a in activities
            if a.provider == Provider.INTERVALS
            and a.platform_ctl is not None
            and a.platform_atl is not None
            and a.start_time.date() <= end_date
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda a: a.start_time)

    def calculate(self, activities: Sequence[Activity], end_date: date) -> FitnessMetrics:
        """
        Training-load snapshot for ``end_date``.

        Recent strain always comes from the local series because the
        platform only reports the averages.
        """
        local = self.calculate_local(activities, end_date)
        latest = self.platform_snapshot(activities, end_date)
        if latest is None:
            return local

        ctl = latest.platform_ctl
        atl = latest.platform_atl
        acwr = calculate_acwr(atl, ctl)
        self._logger.debug(f"Using coaching platform load from activity {latest.id}")
        return FitnessMetrics(
            date=end_date,
            ctl=ctl,
            atl=atl,
            tsb=ctl - atl,
            acwr=acwr,
            risk_zone=determine_risk_zone(acwr),
            recent_strain=local.recent_strain,
            active_days=local.active_days,
            source="platform",
            low_confidence=False,
        )
