"""In-memory data sources, used for exported snapshots and tests."""

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from ..models.activity import Activity, ActivityType, Provider
from ..models.signals import SleepSession
from .base import MetricType, Sample


class StaticActivityProvider:
    """ActivityProvider over a fixed list of activities."""

    def __init__(self, provider: Provider, activities: Iterable[Activity] = ()):
        self.provider = provider
        self._activities = list(activities)

    async def list_activities(self, since: date, until: Optional[date] = None) -> List[Activity]:
        return [
            a for a in self._activities
            if a.start_time.date() >= since and (until is None or a.start_time.date() <= until)
        ]


class InMemoryHealthStore:
    """HealthDataStore backed by plain lists."""

    def __init__(
        self,
        workouts: Iterable[Activity] = (),
        samples: Optional[Dict[MetricType, List[Sample]]] = None,
        sleep: Optional[Dict[date, SleepSession]] = None,
    ):
        self._workouts = list(workouts)
        self._samples = samples or {}
        self._sleep = sleep or {}

    async def workouts(
        self,
        start: date,
        end: date,
        types: Optional[Set[ActivityType]] = None,
    ) -> List[Activity]:
        return [
            w for w in self._workouts
            if start <= w.start_time.date() <= end and (types is None or w.activity_type in types)
        ]

    async def samples(self, metric: MetricType, start: date, end: date) -> List[Sample]:
        return [s for s in self._samples.get(metric, []) if start <= s.timestamp.date() <= end]

    async def sleep_sessions(self, start: date, end: date) -> Dict[date, SleepSession]:
        return {day: s for day, s in self._sleep.items() if start <= day <= end}

    @classmethod
    def from_export(cls, data: Dict[str, Any]) -> "InMemoryHealthStore":
        """
        Build a store from an exported JSON document.

        Expected keys: ``workouts`` (Activity records), ``samples``
        (metric name -> list of ``{timestamp, value}``) and ``sleep``
        (wake date -> SleepSession record). All are optional.
        """
        workouts = [
            Activity.model_validate({"provider": Provider.HEALTH_STORE.value, **w})
            for w in data.get("workouts", [])
        ]
        samples = {
            MetricType(name): [
                Sample(timestamp=datetime.fromisoformat(s["timestamp"]), value=float(s["value"]))
                for s in series
            ]
            for name, series in data.get("samples", {}).items()
        }
        sleep = {
            date.fromisoformat(day): SleepSession.model_validate(session)
            for day, session in data.get("sleep", {}).items()
        }
        return cls(workouts=workouts, samples=samples, sleep=sleep)
