"""
External data sources for the readiness engine.

- Intervals.icu (coaching platform)
- Strava (social platform)
- The on-device health store, behind the HealthDataStore protocol
"""

from .base import (
    ActivityProvider,
    AuthenticationError,
    HealthDataStore,
    HttpProviderClient,
    MetricType,
    RateLimitError,
    Sample,
    WellnessProvider,
    aggregate_daily_metrics,
    merge_daily_metrics,
    paginate,
)
from .intervals import IntervalsClient
from .memory import InMemoryHealthStore, StaticActivityProvider
from .strava import StravaClient

__all__ = [
    # Interfaces
    "ActivityProvider",
    "HealthDataStore",
    "HttpProviderClient",
    "MetricType",
    "Sample",
    "WellnessProvider",
    "aggregate_daily_metrics",
    "merge_daily_metrics",
    "paginate",
    # Errors
    "AuthenticationError",
    "RateLimitError",
    # Clients
    "IntervalsClient",
    "StravaClient",
    "InMemoryHealthStore",
    "StaticActivityProvider",
]
