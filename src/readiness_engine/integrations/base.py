"""
Base classes for external data sources.

The engine depends only on these interfaces:
- ActivityProvider: "list activities since date X"
- HealthDataStore: workouts by date range and type, scalar sample series
  by metric, and nightly sleep sessions
- WellnessProvider: optional daily wellness from a coaching platform,
  used to fill gaps the health store leaves

HttpProviderClient holds the shared httpx request loop used by the
coaching-platform and social-platform clients.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    Set,
    TypeVar,
    runtime_checkable,
)

import httpx

from ..exceptions import ErrorCode, SourceUnavailableError
from ..models.activity import Activity, ActivityType, Provider
from ..models.signals import DailyMetrics, SleepSession

T = TypeVar("T")


class AuthenticationError(SourceUnavailableError):
    """Credentials are missing, expired or not yet granted."""

    def __init__(self, message: str, provider: str = ""):
        super().__init__(message, provider, ErrorCode.SOURCE_UNAUTHORIZED)


class RateLimitError(SourceUnavailableError):
    """The provider refused the request until ``retry_after`` seconds pass."""

    def __init__(self, message: str, provider: str = "", retry_after: Optional[int] = None):
        self.retry_after = retry_after
        super().__init__(
            message,
            provider,
            ErrorCode.SOURCE_RATE_LIMITED,
            {"retry_after": retry_after} if retry_after is not None else None,
        )


class MetricType(str, Enum):
    """Scalar series a health store can return."""

    HRV = "hrv"
    RESTING_HR = "resting_hr"
    RESPIRATORY_RATE = "respiratory_rate"
    STEPS = "steps"


@dataclass(frozen=True)
class Sample:
    timestamp: datetime
    value: float


@runtime_checkable
class ActivityProvider(Protocol):
    """A remote platform listing completed sessions."""

    provider: Provider

    async def list_activities(self, since: date, until: Optional[date] = None) -> List[Activity]:
        ...


@runtime_checkable
class WellnessProvider(Protocol):
    """A platform that also reports daily wellness (HRV, resting HR, sleep)."""

    async def wellness(self, since: date, until: Optional[date] = None) -> List[DailyMetrics]:
        ...


@runtime_checkable
class HealthDataStore(Protocol):
    """The on-device health store."""

    async def workouts(
        self,
        start: date,
        end: date,
        types: Optional[Set[ActivityType]] = None,
    ) -> List[Activity]:
        ...

    async def samples(self, metric: MetricType, start: date, end: date) -> List[Sample]:
        ...

    async def sleep_sessions(self, start: date, end: date) -> Dict[date, SleepSession]:
        """Sleep sessions keyed by the date of waking."""
        ...


async def paginate(
    fetch_page: Callable[[int], Awaitable[List[T]]],
    page_size: int,
    max_pages: int = 20,
) -> List[T]:
    """
    Collect pages until a short page is returned.

    Pages are numbered from 1. ``fetch_page`` must be idempotent: asking
    for the same page twice returns the same items.
    """
    items: List[T] = []
    for page in range(1, max_pages + 1):
        batch = await fetch_page(page)
        items.extend(batch)
        if len(batch) < page_size:
            break
    return items


def aggregate_daily_metrics(
    samples: Dict[MetricType, Sequence[Sample]],
    sleep: Dict[date, SleepSession],
) -> List[DailyMetrics]:
    """
    Collapse raw sample series into one DailyMetrics per calendar day.

    HRV, resting HR and respiratory rate are averaged per day; steps are
    summed. Sleep is attributed to the day of waking.
    """
    buckets: Dict[date, Dict[MetricType, List[float]]] = defaultdict(lambda: defaultdict(list))
    for metric, series in samples.items():
        for sample in series:
            buckets[sample.timestamp.date()][metric].append(sample.value)

    days = sorted(set(buckets) | set(sleep))
    result = []
    for day in days:
        values = buckets.get(day, {})

        def mean(metric: MetricType) -> Optional[float]:
            series = values.get(metric)
            return sum(series) / len(series) if series else None

        steps = values.get(MetricType.STEPS)
        session = sleep.get(day)
        result.append(
            DailyMetrics(
                date=day,
                hrv=mean(MetricType.HRV),
                rhr=mean(MetricType.RESTING_HR),
                respiratory_rate=mean(MetricType.RESPIRATORY_RATE),
                steps=sum(steps) if steps else None,
                sleep_seconds=session.asleep_seconds if session else None,
                bedtime=session.bedtime if session else None,
                wake_time=session.wake_time if session else None,
            )
        )
    return result


def merge_daily_metrics(
    primary: Sequence[DailyMetrics],
    fallback: Sequence[DailyMetrics],
) -> List[DailyMetrics]:
    """
    Fill gaps in ``primary`` from ``fallback``, day by day.

    A value present in ``primary`` always wins; days only ``fallback``
    knows about are added. Result is sorted by date.
    """
    by_day = {m.date: m for m in primary}
    for extra in fallback:
        current = by_day.get(extra.date)
        if current is None:
            by_day[extra.date] = extra
            continue
        gaps = {
            name: value
            for name, value in extra.model_dump().items()
            if name != "date" and value is not None and getattr(current, name) is None
        }
        if gaps:
            by_day[extra.date] = current.model_copy(update=gaps)
    return [by_day[d] for d in sorted(by_day)]


class HttpProviderClient:
    """
    Shared async HTTP plumbing for remote activity providers.

    Subclasses set ``provider`` and ``base_url`` and implement
    ``_auth_kwargs``. Every failure surfaces as a SourceUnavailableError
    subclass so callers can absorb it at the component boundary.
    """

    provider: Provider
    base_url: str = ""
    max_retry_wait: float = 60.0

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ):
        self._transport = transport
        self._timeout = timeout
        self._http_client: Optional[httpx.AsyncClient] = None
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def _auth_kwargs(self) -> Dict[str, Any]:
        raise NotImplementedError

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self._timeout,
                transport=self._transport,
                **self._auth_kwargs(),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        max_retries: int = 3,
    ) -> Any:
        """
        Make an API request with rate limit handling.

        Raises:
            AuthenticationError: On 401/403
            RateLimitError: If still rate limited after retries
            SourceUnavailableError: For network failures and other API errors
        """
        name = self.provider.value
        client = await self._get_client()

        for attempt in range(max_retries):
            try:
                response = await client.request(method, endpoint, params=params)
            except httpx.HTTPError as e:
                raise SourceUnavailableError(f"{name} request failed: {e}", name) from e

            if response.status_code == 200:
                try:
                    return response.json()
                except ValueError as e:
                    raise SourceUnavailableError(
                        f"{name} returned a body that is not JSON", name, details={"endpoint": endpoint}
                    ) from e

            if response.status_code in (401, 403):
                raise AuthenticationError(
                    f"{name} rejected the credentials ({response.status_code})", name
                )

            if response.status_code == 429:
                retry_after = self._get_retry_after(response)
                if attempt < max_retries - 1:
                    self._logger.warning(f"{name} rate limited, retrying in {retry_after}s")
                    await asyncio.sleep(min(retry_after, self.max_retry_wait))
                    continue
                raise RateLimitError(f"{name} rate limit exceeded", name, retry_after)

            raise SourceUnavailableError(
                f"{name} API error: HTTP {response.status_code}",
                name,
                details={"status_code": response.status_code, "endpoint": endpoint},
            )

        raise SourceUnavailableError("Max retries exceeded", name)

    @staticmethod
    def _get_retry_after(response: httpx.Response) -> int:
        retry_after = response.headers.get("Retry-After")
        if retry_after and retry_after.isdigit():
            return int(retry_after)
        return 900

    def _as_list(self, data: Any) -> List[Any]:
        """The JSON array a list endpoint returned.

        Raises:
            SourceUnavailableError: If the payload is not an array
        """
        if data is None:
            return []
        if not isinstance(data, list):
            name = self.provider.value
            raise SourceUnavailableError(
                f"{name} returned {type(data).__name__} where a list was expected", name
            )
        return data

    def _map_records(self, data: Any, mapper: Callable[[Dict[str, Any]], T]) -> List[T]:
        """Convert a JSON array with ``mapper``, skipping records it rejects."""
        name = self.provider.value
        items: List[T] = []
        for record in self._as_list(data):
            try:
                items.append(mapper(record))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                # pydantic's ValidationError is a ValueError
                self._logger.warning(f"Skipping malformed {name} record: {e}")
        return items
