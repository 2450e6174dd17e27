"""
Strava client for activity listing.

Strava does not compute a training-stress value, so its sessions feed the
training load engine through the heart-rate impulse instead.

Rate limits (Strava API):
- 15-minute limit: 200 requests
- Daily limit: 2,000 requests
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

import httpx

from ..models.activity import Activity, ActivityType, Provider
from .base import AuthenticationError, HttpProviderClient, paginate

PAGE_SIZE = 100


def activity_from_api(data: Dict[str, Any]) -> Activity:
    """Convert a Strava summary activity into an Activity."""
    # start_date_local carries a trailing Z even though it is local time
    start = datetime.fromisoformat(data["start_date_local"].replace("Z", ""))
    return Activity(
        id=str(data["id"]),
        provider=Provider.STRAVA,
        start_time=start,
        activity_type=ActivityType.normalize(data.get("sport_type") or data.get("type")),
        name=data.get("name"),
        duration_seconds=data.get("moving_time") or data.get("elapsed_time"),
        distance_meters=data.get("distance"),
        avg_power=data.get("average_watts"),
        max_power=data.get("max_watts"),
        avg_hr=data.get("average_heartrate"),
        max_hr=data.get("max_heartrate"),
        avg_cadence=data.get("average_cadence"),
        elevation_gain=data.get("total_elevation_gain"),
        calories=data.get("calories"),
    )


def _epoch(day: date) -> int:
    return int(datetime.combine(day, time.min).timestamp())


class StravaClient(HttpProviderClient):
    """
    Client for the Strava API v3.

    Usage:
        async with StravaClient(access_token) as client:
            activities = await client.list_activities(since=date.today() - timedelta(days=42))
    """

    provider = Provider.STRAVA
    base_url = "https://www.strava.com/api/v3"

    def __init__(
        self,
        access_token: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(transport=transport, logger=logger)
        self.access_token = access_token

    def _auth_kwargs(self) -> Dict[str, Any]:
        if not self.access_token:
            raise AuthenticationError("Strava access token is not configured", self.provider.value)
        return {"headers": {"Authorization": f"Bearer {self.access_token}"}}

    async def list_activities(self, since: date, until: Optional[date] = None) -> List[Activity]:
        """All activities starting on or after ``since`` (and on or before ``until``)."""
        params: Dict[str, Any] = {"after": _epoch(since), "per_page": PAGE_SIZE}
        if until is not None:
            params["before"] = _epoch(until + timedelta(days=1))

        async def fetch_page(page: int) -> List[Dict[str, Any]]:
            data = await self._request("GET", "/athlete/activities", params={**params, "page": page})
            return self._as_list(data)

        records = await paginate(fetch_page, PAGE_SIZE)
        activities = self._map_records(records, activity_from_api)
        self._logger.debug(f"Fetched {len(activities)} Strava activities since {since}")
        return activities
