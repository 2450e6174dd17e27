"""
Intervals.icu client.

The coaching platform computes its own training load (``icu_training_load``),
intensity factor and the athlete's CTL/ATL as of each activity, which the
training load engine treats as authoritative.

Usage:
    async with IntervalsClient(api_key, athlete_id="i12345") as client:
        activities = await client.list_activities(since=date(2024, 1, 1))
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import httpx

from ..models.activity import Activity, ActivityType, Provider
from ..models.signals import DailyMetrics
from .base import AuthenticationError, HttpProviderClient


def _parse_local_time(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", ""))


def activity_from_api(data: Dict[str, Any]) -> Activity:
    """Convert an Intervals.icu activity record into an Activity."""
    return Activity(
        id=str(data["id"]),
        provider=Provider.INTERVALS,
        start_time=_parse_local_time(data["start_date_local"]),
        activity_type=ActivityType.normalize(data.get("type")),
        name=data.get("name"),
        duration_seconds=data.get("moving_time") or data.get("elapsed_time"),
        distance_meters=data.get("distance"),
        avg_power=data.get("icu_average_watts"),
        max_power=data.get("max_watts"),
        avg_hr=data.get("average_heartrate"),
        max_hr=data.get("max_heartrate"),
        avg_cadence=data.get("average_cadence"),
        elevation_gain=data.get("total_elevation_gain"),
        training_stress=data.get("icu_training_load"),
        intensity_factor=data.get("icu_intensity"),
        calories=data.get("calories"),
        platform_ctl=data.get("icu_ctl"),
        platform_atl=data.get("icu_atl"),
    )


def wellness_from_api(data: Dict[str, Any]) -> DailyMetrics:
    """Convert an Intervals.icu wellness record (keyed by ISO date) into DailyMetrics."""
    return DailyMetrics(
        date=date.fromisoformat(data["id"]),
        hrv=data.get("hrv"),
        rhr=data.get("restingHR"),
        respiratory_rate=data.get("respiration"),
        sleep_seconds=data.get("sleepSecs"),
        sleep_score=data.get("sleepScore"),
        steps=data.get("steps"),
    )


class IntervalsClient(HttpProviderClient):
    """Read-only client for the Intervals.icu REST API."""

    provider = Provider.INTERVALS
    base_url = "https://intervals.icu/api/v1"

    def __init__(
        self,
        api_key: str,
        athlete_id: str = "0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(transport=transport, logger=logger)
        self.api_key = api_key
        self.athlete_id = athlete_id or "0"

    def _auth_kwargs(self) -> Dict[str, Any]:
        if not self.api_key:
            raise AuthenticationError("Intervals.icu API key is not configured", self.provider.value)
        # Intervals.icu uses HTTP basic auth with the literal user name API_KEY
        return {"auth": httpx.BasicAuth("API_KEY", self.api_key)}

    async def list_activities(self, since: date, until: Optional[date] = None) -> List[Activity]:
        """Activities between ``since`` and ``until`` (inclusive), newest first."""
        params = {"oldest": since.isoformat()}
        if until is not None:
            params["newest"] = until.isoformat()
        data = await self._request("GET", f"/athlete/{self.athlete_id}/activities", params=params)

        activities = self._map_records(data, activity_from_api)
        self._logger.debug(f"Fetched {len(activities)} Intervals.icu activities since {since}")
        return activities

    async def wellness(self, since: date, until: Optional[date] = None) -> List[DailyMetrics]:
        """Daily wellness entries (HRV, resting HR, sleep, steps)."""
        params = {"oldest": since.isoformat()}
        if until is not None:
            params["newest"] = until.isoformat()
        data = await self._request("GET", f"/athlete/{self.athlete_id}/wellness", params=params)
        return self._map_records(data, wellness_from_api)
