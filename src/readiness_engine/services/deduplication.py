"""
Activity deduplication across providers.

This service:
- Merges activity lists from the coaching platform, the social platform,
  and the health store into one canonical list
- Detects cross-posted sessions with a time/type/duration/distance heuristic
- Keeps the copy from the most trusted provider (Intervals > Strava > health store)
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import Settings
from ..models.activity import PROVIDER_PRIORITY, Activity, ActivityType, Provider


# Start-time tolerance absorbs local-vs-UTC offsets between providers
TIME_TOLERANCE_SECONDS = 90 * 60
DURATION_TOLERANCE = 0.10  # relative to the mean of both durations
DISTANCE_TOLERANCE = 0.10

ActivityRef = Tuple[Provider, str]


def _ref(activity: Activity) -> ActivityRef:
    return (activity.provider, activity.id)


def _within_relative(a: Optional[float], b: Optional[float], tolerance: float) -> bool:
    """True when either side is missing or both agree within ``tolerance``."""
    if a is None or b is None:
        return True
    mean = (a + b) / 2
    if mean <= 0:
        return True
    return abs(a - b) / mean <= tolerance


@dataclass
class CanonicalActivitySet:
    """Deduplicated activities, newest first."""

    activities: List[Activity]
    input_count: int
    absorbed: Dict[ActivityRef, List[ActivityRef]] = field(default_factory=dict)

    @property
    def duplicates_removed(self) -> int:
        return self.input_count - len(self.activities)

    def count_by_provider(self) -> Dict[Provider, int]:
        counts = {p: 0 for p in PROVIDER_PRIORITY}
        for activity in self.activities:
            counts[activity.provider] += 1
        return counts

    def __len__(self) -> int:
        return len(self.activities)

    def __iter__(self):
        return iter(self.activities)

    def to_dict(self) -> dict:
        return {
            "activities": [a.model_dump(mode="json") for a in self.activities],
            "input_count": self.input_count,
            "duplicates_removed": self.duplicates_removed,
            "by_provider": {p.value: n for p, n in self.count_by_provider().items()},
        }


class ActivityDeduplicator:
    """Merges per-provider activity lists into a CanonicalActivitySet."""

    def __init__(
        self,
        time_tolerance_seconds: float = TIME_TOLERANCE_SECONDS,
        duration_tolerance: float = DURATION_TOLERANCE,
        distance_tolerance: float = DISTANCE_TOLERANCE,
        logger: Optional[logging.Logger] = None,
    ):
        self.time_tolerance_seconds = time_tolerance_seconds
        self.duration_tolerance = duration_tolerance
        self.distance_tolerance = distance_tolerance
        self._logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Settings, logger: Optional[logging.Logger] = None) -> "ActivityDeduplicator":
        return cls(
            time_tolerance_seconds=settings.dedup_time_tolerance_minutes * 60,
            duration_tolerance=settings.dedup_duration_tolerance,
            distance_tolerance=settings.dedup_distance_tolerance,
            logger=logger,
        )

    def is_duplicate(self, a: Activity, b: Activity) -> bool:
        """
        Decide whether two activities from different providers are the same session.

        All of these must hold:
        - providers differ
        - start times are strictly closer than the time tolerance
        - types match, or either side is OTHER
        - durations and distances agree within tolerance when both sides report them
        """
        if a.provider == b.provider:
            return False

        delta = abs((a.start_time - b.start_time).total_seconds())
        if delta >= self.time_tolerance_seconds:
            return False

        if a.activity_type != b.activity_type and ActivityType.OTHER not in (
            a.activity_type,
            b.activity_type,
        ):
            return False

        if not _within_relative(a.duration_seconds, b.duration_seconds, self.duration_tolerance):
            return False

        return _within_relative(a.distance_meters, b.distance_meters, self.distance_tolerance)

    def find_matches(self, target: Activity, candidates: Iterable[Activity]) -> List[Activity]:
        return [c for c in candidates if self.is_duplicate(target, c)]

    def merge(
        self,
        intervals: Sequence[Activity] = (),
        strava: Sequence[Activity] = (),
        health_store: Sequence[Activity] = (),
    ) -> CanonicalActivitySet:
        """
        Merge three provider lists into one canonical, newest-first list.

        Coaching-platform activities are always kept. Social-platform
        activities are kept only when no coaching-platform activity matches
        them. Health-store workouts are kept only when nothing kept matches.
        Selection depends only on provider priority, never on input order
        between providers.

        Args:
            intervals: Activities from the coaching platform
            strava: Activities from the social platform
            health_store: Workouts from the health store

        Returns:
            CanonicalActivitySet with the removal count and absorbed references
        """
        kept: List[Activity] = []
        absorbed: Dict[ActivityRef, List[ActivityRef]] = {}
        consumed: set = set()

        for tier in (intervals, strava, health_store):
            for activity in tier:
                ref = _ref(activity)
                if ref in consumed:
                    continue
                kept.append(activity)
                consumed.add(ref)

                lower_tiers = self._lower_tiers(activity.provider, intervals, strava, health_store)
                matches = [m for m in self.find_matches(activity, lower_tiers) if _ref(m) not in consumed]
                if matches:
                    absorbed[ref] = [_ref(m) for m in matches]
                    consumed.update(_ref(m) for m in matches)

        kept.sort(key=lambda a: a.start_time, reverse=True)

        input_count = len(intervals) + len(strava) + len(health_store)
        result = CanonicalActivitySet(activities=kept, input_count=input_count, absorbed=absorbed)
        if result.duplicates_removed:
            self._logger.info(
                f"Merged {input_count} activities into {len(kept)} "
                f"({result.duplicates_removed} duplicates removed)"
            )
        return result

    @staticmethod
    def _lower_tiers(
        provider: Provider,
        intervals: Sequence[Activity],
        strava: Sequence[Activity],
        health_store: Sequence[Activity],
    ) -> List[Activity]:
        if provider == Provider.INTERVALS:
            return [*strava, *health_store]
        if provider == Provider.STRAVA:
            return list(health_store)
        return []


def select_best_activity(duplicates: Sequence[Activity]) -> Optional[Activity]:
    """Pick the copy from the most trusted provider, then the richest one."""
    if not duplicates:
        return None
    return min(duplicates, key=lambda a: (a.provider.priority, -a.richness))


class DataType(str, Enum):
    """Kinds of data whose preferred provider differs."""

    POWER = "power"
    HEART_RATE = "heart_rate"
    TRAINING_METRICS = "training_metrics"  # TSS, IF, CTL, ATL
    WELLNESS = "wellness"
    ACTIVITIES = "activities"


_SOURCE_PREFERENCE: Dict[DataType, List[Provider]] = {
    DataType.POWER: [Provider.INTERVALS, Provider.STRAVA],
    DataType.HEART_RATE: [Provider.STRAVA, Provider.INTERVALS, Provider.HEALTH_STORE],
    DataType.TRAINING_METRICS: [Provider.INTERVALS],
    DataType.WELLNESS: [Provider.HEALTH_STORE, Provider.INTERVALS],
    DataType.ACTIVITIES: [Provider.INTERVALS, Provider.STRAVA, Provider.HEALTH_STORE],
}


def preferred_source(data_type: DataType, available: Iterable[Provider]) -> Optional[Provider]:
    """Return the preferred provider for ``data_type`` among ``available``."""
    available = set(available)
    for provider in _SOURCE_PREFERENCE[data_type]:
        if provider in available:
            return provider
    return None
