"""
Daily score calculation pass.

One pass, bottom-up:
1. Fetch activities from every provider, health-store series and sleep
   concurrently through the fetch-once cache. Provider failures are
   logged and absorbed.
2. Merge activities, compute training load and personal baselines.
3. Assemble the DailySignalBundle and score sleep, illness, recovery and
   stress, then evaluate the smart stress threshold.
4. Publish the result and upsert the day's DailyRecord.

The whole pass runs under a deadline. A pass that times out publishes
nothing, so the previous result stays authoritative. A second pass
requested while one is running is skipped, and a repeat request for the
same day returns the published result unless forced.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ..cache import CacheKey, CacheKind, FetchOnceCache
from ..config import Settings
from ..db.daily_records import DailyRecordStore, InMemoryDailyRecordStore
from ..exceptions import CalculationTimeoutError, NoScoreAvailableError, SourceUnavailableError
from ..integrations.base import (
    ActivityProvider,
    HealthDataStore,
    MetricType,
    Sample,
    WellnessProvider,
    aggregate_daily_metrics,
    merge_daily_metrics,
)
from ..metrics.baselines import PersonalBaselines, calculate_baselines, percent_change
from ..metrics.fitness import FitnessMetrics
from ..models.activity import Activity
from ..models.records import BriefRequest, DailyRecord, TrainingLoadSnapshot
from ..models.scores import IllnessIndicator, Score, StressScore
from ..models.signals import DailyMetrics, DailySignalBundle, SleepSession
from .alerts import SmartThreshold, StressAlert
from .base import BaseService
from .deduplication import ActivityDeduplicator, CanonicalActivitySet
from .illness import IllnessDetectionService, IllnessDetector
from .recovery import RecoveryScorer
from .sleep import SleepScorer
from .stress import StressScorer
from .training_load import TrainingLoadEngine

T = TypeVar("T")

TREND_DAYS = 7

# Easy and hard day targets as a fraction of CTL
TSS_LOW_FACTOR = 0.8
TSS_HIGH_FACTOR = 1.5
DEFAULT_CTL_FOR_TARGETS = 50.0


@dataclass
class DailyScores:
    """Everything one calculation pass produced for ``date``."""

    date: date
    bundle: DailySignalBundle
    activities: CanonicalActivitySet
    training_load: FitnessMetrics
    baselines: PersonalBaselines
    sleep: Optional[Score] = None
    recovery: Optional[Score] = None
    stress: Optional[StressScore] = None
    alert: Optional[StressAlert] = None
    illness: Optional[IllnessIndicator] = None
    unavailable_sources: List[str] = field(default_factory=list)

    def activities_on_day(self) -> List[Activity]:
        return [a for a in self.activities if a.start_time.date() == self.date]

    def to_record(self, previous: Optional[DailyRecord] = None) -> DailyRecord:
        """Build the persisted record, keeping derived text from ``previous``."""
        return DailyRecord(
            date=self.date,
            recovery_score=self.recovery.value if self.recovery else None,
            recovery_band=self.recovery.band.value if self.recovery else None,
            recovery_sub_scores=self.recovery.sub_scores if self.recovery else {},
            sleep_score=self.sleep.value if self.sleep else None,
            sleep_band=self.sleep.band.value if self.sleep else None,
            sleep_sub_scores=self.sleep.sub_scores if self.sleep else {},
            stress_acute=self.stress.acute if self.stress else None,
            stress_chronic=self.stress.chronic if self.stress else None,
            stress_threshold=self.alert.threshold if self.alert else None,
            stress_alert=self.alert.triggered if self.alert else False,
            training_load=TrainingLoadSnapshot(
                ctl=round(self.training_load.ctl, 1),
                atl=round(self.training_load.atl, 1),
                tsb=round(self.training_load.tsb, 1),
                source=self.training_load.source,
                low_confidence=self.training_load.low_confidence,
            ),
            illness=self.illness.to_dict() if self.illness else None,
            summary=previous.summary if previous else None,
            brief_text=previous.brief_text if previous else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "recovery": self.recovery.to_dict() if self.recovery else None,
            "sleep": self.sleep.to_dict() if self.sleep else None,
            "stress": self.stress.to_dict() if self.stress else None,
            "alert": self.alert.to_dict() if self.alert else None,
            "illness": self.illness.to_dict() if self.illness else None,
            "training_load": self.training_load.to_dict(),
            "baselines": self.baselines.to_dict(),
            "activities": self.activities.to_dict(),
            "unavailable_sources": list(self.unavailable_sources),
        }


def build_brief_request(scores: DailyScores) -> BriefRequest:
    """Payload for the remote brief-generation service."""
    bundle = scores.bundle
    sleep_delta = None
    if bundle.sleep_duration_seconds is not None and bundle.sleep_baseline.duration_seconds:
        sleep_delta = round((bundle.sleep_duration_seconds - bundle.sleep_baseline.duration_seconds) / 3600, 2)

    hrv_delta = percent_change(bundle.hrv, bundle.hrv_baseline)
    rhr_delta = percent_change(bundle.rhr, bundle.rhr_baseline)
    ctl = bundle.ctl if bundle.ctl else DEFAULT_CTL_FOR_TARGETS

    return BriefRequest(
        date=scores.date,
        recovery_score=scores.recovery.value if scores.recovery else None,
        sleep_score=scores.sleep.value if scores.sleep else None,
        hrv_delta_percent=round(hrv_delta, 1) if hrv_delta is not None else None,
        rhr_delta_percent=round(rhr_delta, 1) if rhr_delta is not None else None,
        sleep_delta_hours=sleep_delta,
        tsb=round(bundle.tsb, 1) if bundle.tsb is not None else None,
        target_tss_low=int(ctl * TSS_LOW_FACTOR),
        target_tss_high=int(ctl * TSS_HIGH_FACTOR),
        completed_activities=scores.activities_on_day(),
        illness=scores.illness.to_dict() if scores.illness else None,
    )


class DailyScoreService(BaseService):
    """
    Runs and publishes the daily calculation pass.

    Collaborators are injected so each instance is isolated; providers that
    are not configured are simply skipped.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        cache: Optional[FetchOnceCache] = None,
        intervals: Optional[ActivityProvider] = None,
        strava: Optional[ActivityProvider] = None,
        health_store: Optional[HealthDataStore] = None,
        store: Optional[DailyRecordStore] = None,
        illness_service: Optional[IllnessDetectionService] = None,
        today: Callable[[], date] = date.today,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__(settings=settings, cache=cache, logger=logger)
        self.intervals = intervals
        self.strava = strava
        self.health_store = health_store
        self.store = store if store is not None else InMemoryDailyRecordStore()
        self._today = today

        s = self.settings
        self.deduplicator = ActivityDeduplicator.from_settings(s, logger=self._logger)
        self.load_engine = TrainingLoadEngine(settings=s, logger=self._logger)
        self.sleep_scorer = SleepScorer(s.sleep_need_hours, logger=self._logger)
        self.recovery_scorer = RecoveryScorer(logger=self._logger)
        self.stress_scorer = StressScorer(s.stress_weights, s.stress_history_days, logger=self._logger)
        self.threshold = SmartThreshold.from_settings(s, logger=self._logger)
        self.illness_service = illness_service or IllnessDetectionService(
            IllnessDetector(logger=self._logger),
            min_interval_seconds=s.illness_min_interval_seconds,
            cache=self.cache,
            logger=self._logger,
        )

        self._published: Optional[DailyScores] = None
        self._running = False
        self.computations = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def latest(self) -> Optional[DailyScores]:
        """Most recently published result."""
        return self._published

    def cached_result(self, day: date) -> Optional[DailyScores]:
        """Published result for ``day``; results are only valid for their own day."""
        if self._published is not None and self._published.date == day:
            return self._published
        return None

    async def calculate(self, day: Optional[date] = None, force: bool = False) -> Optional[DailyScores]:
        """
        Run the daily pass for ``day`` (default today).

        Args:
            day: Calendar day to score
            force: Recompute even if a result for ``day`` was already published

        Returns:
            The published DailyScores, or the previous result (possibly None)
            when another pass is already running

        Raises:
            CalculationTimeoutError: The pass exceeded its deadline; nothing
                was published
            NoScoreAvailableError: No input was usable for any score
        """
        day = day or self._today()

        if self._running:
            self._logger.info(f"Daily calculation already running, skipping request for {day}")
            return self._published

        if not force:
            cached = self.cached_result(day)
            if cached is not None:
                self._logger.debug(f"Returning cached daily scores for {day}")
                return cached

        self._running = True
        timeout = self.settings.calculation_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                result = await self._compute(day, force)
        except TimeoutError:
            self._logger.warning(f"Daily calculation for {day} timed out after {timeout}s")
            raise CalculationTimeoutError(timeout) from None
        finally:
            self._running = False

        self._publish(result)
        return result

    def _publish(self, result: DailyScores) -> None:
        previous = self.store.get(result.date)
        self.store.upsert(result.to_record(previous))
        self._published = result
        self._logger.info(
            f"Published scores for {result.date}: "
            f"recovery={result.recovery.value if result.recovery else None} "
            f"sleep={result.sleep.value if result.sleep else None} "
            f"stress={result.stress.acute if result.stress else None}"
        )

    async def _absorb(
        self,
        source: str,
        producer: Callable[[], Awaitable[T]],
        default: T,
        failed: List[str],
    ) -> T:
        try:
            return await producer()
        except SourceUnavailableError as e:
            self._logger.warning(f"{source} unavailable, continuing without it: {e.message}")
            failed.append(source)
            return default
        except Exception as e:
            # One source's bad data must not cost every score
            self._logger.warning(f"{source} returned unusable data, continuing without it: {e!r}", exc_info=True)
            failed.append(source)
            return default

    def _activities(self, provider: Optional[ActivityProvider], since: date, day: date):
        async def produce() -> List[Activity]:
            if provider is None:
                return []
            key = CacheKey.of(CacheKind.ACTIVITIES, day, provider=provider.provider.value, since=since)
            return await self._cached(key, lambda: provider.list_activities(since, day))

        return produce

    def _workouts(self, since: date, day: date):
        async def produce() -> List[Activity]:
            if self.health_store is None:
                return []
            key = CacheKey.of(CacheKind.ACTIVITIES, day, provider="health_store", since=since)
            return await self._cached(key, lambda: self.health_store.workouts(since, day))

        return produce

    def _samples(self, metric: MetricType, since: date, day: date):
        async def produce() -> List[Sample]:
            if self.health_store is None:
                return []
            key = CacheKey.of(CacheKind.HEALTH_METRICS, day, metric=metric.value, since=since)
            return await self._cached(key, lambda: self.health_store.samples(metric, since, day))

        return produce

    def _sleep(self, since: date, day: date):
        async def produce() -> Dict[date, SleepSession]:
            if self.health_store is None:
                return {}
            key = CacheKey.of(CacheKind.WELLNESS, day, metric="sleep", since=since)
            return await self._cached(key, lambda: self.health_store.sleep_sessions(since, day))

        return produce

    def _wellness(self, since: date, day: date):
        async def produce() -> List[DailyMetrics]:
            if not isinstance(self.intervals, WellnessProvider):
                return []
            key = CacheKey.of(CacheKind.WELLNESS, day, provider=self.intervals.provider.value, since=since)
            return await self._cached(key, lambda: self.intervals.wellness(since, day))

        return produce

    async def _compute(self, day: date, force: bool = False) -> DailyScores:
        s = self.settings
        self.computations += 1
        failed: List[str] = []

        load_since = day - timedelta(days=s.ctl_days - 1)
        metrics_since = day - timedelta(days=max(s.longest_baseline_window, TREND_DAYS))
        metrics = list(MetricType)

        fetched = await asyncio.gather(
            self._absorb("intervals", self._activities(self.intervals, load_since, day), [], failed),
            self._absorb("strava", self._activities(self.strava, load_since, day), [], failed),
            self._absorb("health_store", self._workouts(load_since, day), [], failed),
            self._absorb("sleep", self._sleep(metrics_since, day), {}, failed),
            self._absorb("intervals_wellness", self._wellness(metrics_since, day), [], failed),
            *(
                self._absorb(m.value, self._samples(m, metrics_since, day), [], failed)
                for m in metrics
            ),
        )
        intervals, strava, workouts, sleep_sessions, wellness = fetched[:5]
        samples = dict(zip(metrics, fetched[5:]))

        # Selection happens only after every fetch has resolved
        canonical = self.deduplicator.merge(intervals, strava, workouts)
        load = self.load_engine.calculate(canonical.activities, day)

        # The health store is preferred for wellness; the platform fills its gaps
        daily = merge_daily_metrics(aggregate_daily_metrics(samples, sleep_sessions), wellness)
        history = self._with_sleep_scores(daily, day)
        baselines = calculate_baselines(
            history,
            as_of=day,
            days=s.baseline_days,
            min_samples=s.baseline_min_samples,
            min_sleep_hours=s.min_sleep_hours_for_baseline,
            window_days=s.baseline_window_days,
        )
        today = next((m for m in history if m.date == day), DailyMetrics(date=day))

        session = sleep_sessions.get(day)
        sleep_score = self.sleep_scorer.score(session, baselines.sleep_baseline(), day)

        bundle = DailySignalBundle(
            date=day,
            hrv=today.hrv,
            hrv_baseline=baselines.hrv,
            rhr=today.rhr,
            rhr_baseline=baselines.rhr,
            respiratory_rate=today.respiratory_rate,
            respiratory_baseline=baselines.respiratory_rate,
            sleep=session,
            sleep_baseline=baselines.sleep_baseline(),
            sleep_score=sleep_score.value if sleep_score else None,
            atl=load.atl,
            ctl=load.ctl,
            recent_strain=load.recent_strain,
            activity_level=today.steps,
            activity_baseline=baselines.steps,
            hrv_trend=[m.hrv for m in reversed(history) if m.hrv is not None][:TREND_DAYS],
            rhr_trend=[m.rhr for m in reversed(history) if m.rhr is not None][:TREND_DAYS],
        )

        analysis = await self.illness_service.analyze_bundle(bundle, force=force)
        # A skipped concurrent analysis may hand back another day's result
        illness = analysis.indicator if analysis is not None and analysis.day == day else None

        recovery = self.recovery_scorer.score(bundle, illness)
        stress_history = [
            r.stress_acute
            for r in self.store.history(day, s.alert_history_days)
            if r.stress_acute is not None
        ]
        stress = self.stress_scorer.score(
            bundle,
            recovery.value if recovery else None,
            stress_history,
        )
        alert = self.threshold.evaluate(stress.acute, stress_history, load.ctl) if stress else None

        if recovery is None and sleep_score is None and stress is None:
            raise NoScoreAvailableError("daily")

        return DailyScores(
            date=day,
            bundle=bundle,
            activities=canonical,
            training_load=load,
            baselines=baselines,
            sleep=sleep_score,
            recovery=recovery,
            stress=stress,
            alert=alert,
            illness=illness,
            unavailable_sources=failed,
        )

    def _with_sleep_scores(self, history: List[DailyMetrics], day: date) -> List[DailyMetrics]:
        """Attach previously published sleep scores so the sleep-score baseline can form."""
        records = {r.date: r for r in self.store.history(day, self.settings.baseline_window("sleep_score"))}
        enriched = []
        for metrics in history:
            record = records.get(metrics.date)
            if record is not None and record.sleep_score is not None and metrics.sleep_score is None:
                metrics = metrics.model_copy(update={"sleep_score": record.sleep_score})
            enriched.append(metrics)
        return enriched
