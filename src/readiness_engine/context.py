"""
Application context.

Builds the component graph once per process (or per test) and hands out
explicit references. There are no module-level singletons besides the
cached settings: two contexts never share a cache, store or service.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, List, Optional

from .cache import FetchOnceCache
from .config import Settings, get_settings
from .db.daily_records import DailyRecordStore, InMemoryDailyRecordStore, SqliteDailyRecordStore
from .integrations.base import ActivityProvider, HealthDataStore, HttpProviderClient
from .integrations.intervals import IntervalsClient
from .integrations.strava import StravaClient
from .services.daily_scores import DailyScoreService
from .services.illness import IllnessDetectionService, IllnessDetector

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    settings: Settings
    cache: FetchOnceCache
    store: DailyRecordStore
    illness: IllnessDetectionService
    daily_scores: DailyScoreService
    intervals: Optional[ActivityProvider] = None
    strava: Optional[ActivityProvider] = None
    health_store: Optional[HealthDataStore] = None
    _closeables: List[HttpProviderClient] = field(default_factory=list, repr=False)

    @classmethod
    def build(
        cls,
        settings: Optional[Settings] = None,
        intervals: Optional[ActivityProvider] = None,
        strava: Optional[ActivityProvider] = None,
        health_store: Optional[HealthDataStore] = None,
        store: Optional[DailyRecordStore] = None,
        persistent: bool = False,
        today: Callable[[], date] = date.today,
    ) -> "AppContext":
        """
        Wire every component.

        Args:
            settings: Settings to use (defaults to ``get_settings()``)
            intervals: Coaching platform provider; built from credentials when omitted
            strava: Social platform provider; built from credentials when omitted
            health_store: Health data store, if the platform has one
            store: Daily record store; sqlite at ``settings.database_path``
                when ``persistent``, else in memory
            today: Clock for "today"
        """
        settings = settings or get_settings()
        closeables: List[HttpProviderClient] = []

        if intervals is None and settings.intervals_api_key:
            client = IntervalsClient(settings.intervals_api_key, settings.intervals_athlete_id)
            closeables.append(client)
            intervals = client
        if strava is None and settings.strava_access_token:
            client = StravaClient(settings.strava_access_token)
            closeables.append(client)
            strava = client

        if store is None:
            store = (
                SqliteDailyRecordStore(settings.database_path)
                if persistent
                else InMemoryDailyRecordStore()
            )

        cache = FetchOnceCache(settings.cache_ttls)
        illness = IllnessDetectionService(
            IllnessDetector(),
            min_interval_seconds=settings.illness_min_interval_seconds,
            cache=cache,
        )
        daily_scores = DailyScoreService(
            settings=settings,
            cache=cache,
            intervals=intervals,
            strava=strava,
            health_store=health_store,
            store=store,
            illness_service=illness,
            today=today,
        )
        configured = [
            name for name, source in (
                ("intervals", intervals), ("strava", strava), ("health_store", health_store)
            )
            if source is not None
        ]
        logger.debug(f"Context built with sources: {', '.join(configured) or 'none'}")

        return cls(
            settings=settings,
            cache=cache,
            store=store,
            illness=illness,
            daily_scores=daily_scores,
            intervals=intervals,
            strava=strava,
            health_store=health_store,
            _closeables=closeables,
        )

    async def close(self) -> None:
        """Close HTTP clients the context created."""
        for client in self._closeables:
            await client.close()

    async def __aenter__(self) -> "AppContext":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
