"""
Illness / body-stress detection.

The detector looks for deviations from personal baselines that tend to
precede or accompany illness (suppressed or spiking HRV, elevated resting
HR, disrupted sleep, changed breathing rate, reduced activity). It is an
educational signal, not a diagnosis.

The service wraps the detector with a recompute cadence: at most one
analysis per day and interval unless forced, and a concurrent call while
an analysis is running returns immediately.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from ..cache import CacheKey, CacheKind, FetchOnceCache
from ..metrics.baselines import percent_change
from ..models.scores import IllnessIndicator, Severity, Signal, SignalType
from ..models.signals import DailySignalBundle

# Detection thresholds, percent deviation from baseline
HRV_DROP_PERCENT = -10.0
HRV_SPIKE_PERCENT = 100.0
RHR_ELEVATION_PERCENT = 3.0
SLEEP_DROP_PERCENT = -15.0
RESPIRATORY_CHANGE_PERCENT = 8.0
ACTIVITY_DROP_PERCENT = -25.0

# Contribution of each signal to the average deviation
SIGNAL_WEIGHTS = {
    SignalType.HRV_DROP: 1.0,
    SignalType.HRV_SPIKE: 1.2,
    SignalType.ELEVATED_RHR: 1.0,
    SignalType.SLEEP_DISRUPTION: 0.7,
    SignalType.RESPIRATORY_CHANGE: 0.7,
    SignalType.ACTIVITY_DROP: 0.3,
}

MIN_CONFIDENCE = 0.5
TREND_CONSISTENCY_THRESHOLD = 0.7

_CONTEXT = {
    SignalType.HRV_SPIKE: "Elevated HRV detected. ",
    SignalType.HRV_DROP: "Suppressed HRV detected. ",
    SignalType.ELEVATED_RHR: "Elevated resting heart rate detected. ",
    SignalType.SLEEP_DISRUPTION: "Sleep disruption detected. ",
    SignalType.RESPIRATORY_CHANGE: "Respiratory changes detected. ",
    SignalType.ACTIVITY_DROP: "Activity levels reduced. ",
}

_ADVICE = {
    Severity.MILD: "Monitor your recovery metrics. Consider taking it easy if symptoms persist.",
    Severity.MODERATE: "Your body is showing stress signals. Prioritize rest and recovery today.",
    Severity.SEVERE: "Rest is strongly recommended. Consult a healthcare provider if you feel unwell.",
}


def recommendation_for(severity: Severity, signals: Sequence[Signal]) -> str:
    """Advice text led by the signal with the largest deviation."""
    context = ""
    if signals:
        primary = max(signals, key=lambda s: abs(s.deviation))
        context = _CONTEXT.get(primary.type, "")
    return context + _ADVICE.get(severity, "")


def trend_consistency(values: Sequence[float], increasing: bool) -> float:
    """
    Fraction of day-to-day changes moving in the expected direction.

    Args:
        values: Daily values, oldest first
        increasing: Expected direction over time

    Returns:
        0.0 (never) to 1.0 (every change)
    """
    if len(values) < 2:
        return 0.0
    changes = [b - a for a, b in zip(values, values[1:])]
    consistent = sum(1 for c in changes if (c > 0 if increasing else c < 0))
    return consistent / len(changes)


class IllnessDetector:
    """Turns one day's deviations into an IllnessIndicator."""

    def __init__(self, min_confidence: float = MIN_CONFIDENCE, logger: Optional[logging.Logger] = None):
        self.min_confidence = min_confidence
        self._logger = logger or logging.getLogger(__name__)

    def collect_signals(self, bundle: DailySignalBundle) -> List[Signal]:
        signals: List[Signal] = []

        hrv_dev = percent_change(bundle.hrv, bundle.hrv_baseline)
        if hrv_dev is not None:
            if hrv_dev < HRV_DROP_PERCENT:
                signals.append(Signal(SignalType.HRV_DROP, hrv_dev, bundle.hrv, bundle.hrv_baseline))
            elif hrv_dev > HRV_SPIKE_PERCENT:
                # Inflammation can push vagal tone, and so HRV, far above normal
                signals.append(Signal(SignalType.HRV_SPIKE, hrv_dev, bundle.hrv, bundle.hrv_baseline))

        rhr_dev = percent_change(bundle.rhr, bundle.rhr_baseline)
        if rhr_dev is not None and rhr_dev > RHR_ELEVATION_PERCENT:
            signals.append(Signal(SignalType.ELEVATED_RHR, rhr_dev, bundle.rhr, bundle.rhr_baseline))

        sleep_baseline = bundle.sleep_baseline.score
        sleep_dev = percent_change(bundle.sleep_score, sleep_baseline)
        if sleep_dev is not None:
            # A middling score below the usual often hides fragmented sleep
            middling = 60 <= bundle.sleep_score < 85 and sleep_dev < 0
            if sleep_dev < SLEEP_DROP_PERCENT or middling:
                signals.append(
                    Signal(SignalType.SLEEP_DISRUPTION, sleep_dev, float(bundle.sleep_score), sleep_baseline)
                )

        resp_dev = percent_change(bundle.respiratory_rate, bundle.respiratory_baseline)
        if resp_dev is not None and abs(resp_dev) > RESPIRATORY_CHANGE_PERCENT:
            signals.append(
                Signal(
                    SignalType.RESPIRATORY_CHANGE,
                    resp_dev,
                    bundle.respiratory_rate,
                    bundle.respiratory_baseline,
                )
            )

        activity_dev = percent_change(bundle.activity_level, bundle.activity_baseline)
        if activity_dev is not None and activity_dev < ACTIVITY_DROP_PERCENT:
            signals.append(
                Signal(SignalType.ACTIVITY_DROP, activity_dev, bundle.activity_level, bundle.activity_baseline)
            )

        return signals

    @staticmethod
    def grade(signals: Sequence[Signal]) -> Tuple[Severity, float]:
        """Severity and base confidence from signal count and weighted deviation."""
        if not signals:
            return Severity.NONE, 0.0
        count = len(signals)
        avg_deviation = sum(abs(s.deviation) * SIGNAL_WEIGHTS[s.type] for s in signals) / count

        if avg_deviation > 30 or count >= 4:
            severity = Severity.SEVERE
        elif avg_deviation > 20 or count >= 3:
            severity = Severity.MODERATE
        else:
            severity = Severity.MILD

        confidence = min(count / 5, 1.0) * 0.6 + min(avg_deviation / 50, 1.0) * 0.4
        return severity, confidence

    def adjust_confidence(self, confidence: float, signal_count: int, bundle: DailySignalBundle) -> float:
        """Boost confidence for sustained multi-day trends and concurrent signals."""
        hrv_trend = trend_consistency(list(reversed(bundle.hrv_trend)), increasing=False)
        rhr_trend = trend_consistency(list(reversed(bundle.rhr_trend)), increasing=True)
        if hrv_trend > TREND_CONSISTENCY_THRESHOLD or rhr_trend > TREND_CONSISTENCY_THRESHOLD:
            self._logger.debug("Sustained HRV/RHR trend, boosting illness confidence")
            confidence += 0.1
        if signal_count >= 3:
            confidence += 0.05 * (signal_count - 2)
        return min(confidence, 1.0)

    def detect(self, bundle: DailySignalBundle) -> Optional[IllnessIndicator]:
        """
        Analyze one day.

        Returns:
            An IllnessIndicator when at least one signal fires and the
            adjusted confidence reaches ``min_confidence``, else None
        """
        signals = self.collect_signals(bundle)
        if not signals:
            return None

        severity, confidence = self.grade(signals)
        confidence = self.adjust_confidence(confidence, len(signals), bundle)
        if confidence < self.min_confidence:
            self._logger.debug(
                f"{len(signals)} illness signal(s) below confidence threshold ({confidence:.2f})"
            )
            return None

        return IllnessIndicator(
            date=bundle.date,
            severity=severity,
            confidence=confidence,
            signals=signals,
            recommendation=recommendation_for(severity, signals),
        )


# =============================================================================
# Cadence and state
# =============================================================================

class AnalysisState(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    FOUND = "found"
    CLEAR = "clear"


@dataclass
class IllnessAnalysis:
    """One completed analysis; ``indicator`` is None for a clear result."""

    state: AnalysisState
    indicator: Optional[IllnessIndicator]
    day: date
    analyzed_at: float


BundleLoader = Callable[[], Awaitable[DailySignalBundle]]

class IllnessDetectionService:
    """
    Runs the detector at most once per interval for each day.

    Analyses are kept in the fetch-once cache under ``(ILLNESS, day)`` with
    the interval as TTL, so a result is only ever reused for the day it was
    computed for. ``last_analysis`` is None until the first run finishes,
    so "not yet analyzed" is distinct from a clear result.
    """

    def __init__(
        self,
        detector: Optional[IllnessDetector] = None,
        min_interval_seconds: float = 3600.0,
        cache: Optional[FetchOnceCache] = None,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None,
    ):
        self.detector = detector or IllnessDetector()
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._cache = cache if cache is not None else FetchOnceCache(clock=clock, logger=self._logger)
        self._state = AnalysisState.IDLE
        self._last: Optional[IllnessAnalysis] = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def last_analysis(self) -> Optional[IllnessAnalysis]:
        return self._last

    @property
    def indicator(self) -> Optional[IllnessIndicator]:
        return self._last.indicator if self._last else None

    @property
    def has_analyzed(self) -> bool:
        return self._last is not None

    @staticmethod
    def _key(day: date) -> CacheKey:
        return CacheKey.of(CacheKind.ILLNESS, day)

    def cached_analysis(self, day: date) -> Optional[IllnessAnalysis]:
        """The analysis for ``day`` if it is younger than the interval."""
        return self._cache.peek(self._key(day))

    def is_fresh(self, day: Optional[date] = None) -> bool:
        """Whether ``day`` (default: the last analysed day) has a reusable result."""
        if day is None:
            if self._last is None:
                return False
            day = self._last.day
        return self.cached_analysis(day) is not None

    async def analyze(
        self,
        load_bundle: BundleLoader,
        force: bool = False,
        day: Optional[date] = None,
    ) -> Optional[IllnessAnalysis]:
        """
        Analyze a day's bundle unless a result for that day is still fresh.

        Args:
            load_bundle: Async callable producing the day's DailySignalBundle
            force: Ignore the minimum interval
            day: Day the loader produces; when given, a fresh result is
                returned without calling the loader

        Returns:
            The analysis for the bundle's day; the previous analysis
            (possibly None, possibly another day) when another analysis is
            already running
        """
        if self._lock.locked():
            self._logger.debug("Illness analysis already running, skipping")
            return self._last

        async with self._lock:
            if not force and day is not None:
                cached = self.cached_analysis(day)
                if cached is not None:
                    return self._reuse(cached)

            previous_state = self._state
            self._state = AnalysisState.ANALYZING
            analysis: Optional[IllnessAnalysis] = None
            try:
                analysis = await self._run(load_bundle, force)
            finally:
                # Also reached on cancellation, which is not an Exception
                self._state = analysis.state if analysis is not None else previous_state
            return analysis

    async def _run(self, load_bundle: BundleLoader, force: bool) -> IllnessAnalysis:
        bundle = await load_bundle()
        if not force:
            cached = self.cached_analysis(bundle.date)
            if cached is not None:
                return self._reuse(cached)

        indicator = self.detector.detect(bundle)
        state = AnalysisState.FOUND if indicator else AnalysisState.CLEAR
        analysis = IllnessAnalysis(
            state=state,
            indicator=indicator,
            day=bundle.date,
            analyzed_at=self._clock(),
        )
        await self._cache.put(self._key(bundle.date), analysis, ttl=self.min_interval_seconds)
        self._last = analysis
        if indicator:
            self._logger.info(
                f"Illness indicator for {bundle.date}: {indicator.severity.value} "
                f"({indicator.confidence:.2f}, {len(indicator.signals)} signals)"
            )
        return analysis

    def _reuse(self, analysis: IllnessAnalysis) -> IllnessAnalysis:
        self._last = analysis
        self._state = analysis.state
        return analysis

    async def analyze_bundle(self, bundle: DailySignalBundle, force: bool = False) -> Optional[IllnessAnalysis]:
        async def _load() -> DailySignalBundle:
            return bundle

        return await self.analyze(_load, force=force, day=bundle.date)

    async def invalidate(self, day: Optional[date] = None) -> None:
        """Forget cached results (one day, or all) so the next call recomputes."""
        if day is None:
            await self._cache.invalidate_kind(CacheKind.ILLNESS)
        else:
            await self._cache.invalidate(self._key(day))
        if day is None or (self._last is not None and self._last.day == day):
            self._last = None
            if self._state != AnalysisState.ANALYZING:
                self._state = AnalysisState.IDLE
