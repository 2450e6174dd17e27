"""Tests for the Intervals.icu and Strava clients."""

import json
import pytest
from datetime import date, datetime
from unittest.mock import AsyncMock, patch

import httpx

from readiness_engine.exceptions import SourceUnavailableError
from readiness_engine.integrations.base import AuthenticationError, RateLimitError
from readiness_engine.integrations.intervals import IntervalsClient, activity_from_api, wellness_from_api
from readiness_engine.integrations.strava import PAGE_SIZE, StravaClient
from readiness_engine.integrations.strava import activity_from_api as strava_activity
from readiness_engine.models.activity import ActivityType, Provider

INTERVALS_ACTIVITY = {
    "id": "i9876",
    "start_date_local": "2024-03-12T07:30:00",
    "type": "VirtualRide",
    "name": "Zwift",
    "moving_time": 3600,
    "distance": 32000.0,
    "icu_average_watts": 210,
    "average_heartrate": 142,
    "icu_training_load": 72,
    "icu_intensity": 0.82,
    "icu_ctl": 58.3,
    "icu_atl": 64.1,
}

STRAVA_ACTIVITY = {
    "id": 111,
    "start_date_local": "2024-03-12T07:31:00Z",
    "sport_type": "VirtualRide",
    "type": "Ride",
    "moving_time": 3580,
    "distance": 31900.0,
    "average_heartrate": 141,
}


def _transport(handler):
    return httpx.MockTransport(handler)


class TestMappers:
    def test_intervals_activity(self):
        activity = activity_from_api(INTERVALS_ACTIVITY)
        assert activity.provider == Provider.INTERVALS
        assert activity.activity_type == ActivityType.RIDE
        assert activity.training_stress == 72
        assert activity.platform_ctl == 58.3
        assert activity.start_time == datetime(2024, 3, 12, 7, 30)

    def test_intervals_wellness(self):
        metrics = wellness_from_api(
            {"id": "2024-03-12", "hrv": 55.0, "restingHR": 48, "sleepSecs": 27000, "steps": 8000}
        )
        assert metrics.date == date(2024, 3, 12)
        assert metrics.rhr == 48
        assert metrics.sleep_seconds == 27000

    def test_strava_local_time_drops_z(self):
        activity = strava_activity(STRAVA_ACTIVITY)
        assert activity.provider == Provider.STRAVA
        assert activity.id == "111"
        assert activity.start_time == datetime(2024, 3, 12, 7, 31)
        assert activity.training_stress is None


class TestIntervalsClient:
    @pytest.mark.asyncio
    async def test_list_activities(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json=[INTERVALS_ACTIVITY, {"id": "broken"}])

        async with IntervalsClient("key", athlete_id="i42", transport=_transport(handler)) as client:
            activities = await client.list_activities(date(2024, 2, 1), date(2024, 3, 12))

        assert [a.id for a in activities] == ["i9876"]
        assert seen["url"].path == "/api/v1/athlete/i42/activities"
        assert seen["url"].params["oldest"] == "2024-02-01"
        assert seen["url"].params["newest"] == "2024-03-12"
        assert seen["auth"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        client = IntervalsClient("bad", transport=_transport(lambda r: httpx.Response(401)))
        with pytest.raises(AuthenticationError):
            await client.list_activities(date(2024, 3, 1))
        await client.close()

    @pytest.mark.asyncio
    async def test_missing_key(self):
        with pytest.raises(AuthenticationError):
            await IntervalsClient("").list_activities(date(2024, 3, 1))

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = IntervalsClient("key", transport=_transport(lambda r: httpx.Response(503)))
        with pytest.raises(SourceUnavailableError) as exc_info:
            await client.list_activities(date(2024, 3, 1))
        assert exc_info.value.details["status_code"] == 503
        await client.close()

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        client = IntervalsClient("key", transport=_transport(handler))
        with pytest.raises(SourceUnavailableError):
            await client.list_activities(date(2024, 3, 1))
        await client.close()

    @pytest.mark.asyncio
    async def test_rate_limit_retries_then_gives_up(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(429, headers={"Retry-After": "5"})

        client = IntervalsClient("key", transport=_transport(handler))
        with patch("readiness_engine.integrations.base.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(RateLimitError) as exc_info:
                await client.list_activities(date(2024, 3, 1))

        assert len(calls) == 3
        assert sleep.await_count == 2
        assert exc_info.value.retry_after == 5
        await client.close()


class TestStravaClient:
    @pytest.mark.asyncio
    async def test_paginates_until_short_page(self):
        pages = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["page"])
            pages.append(page)
            assert request.headers["authorization"] == "Bearer token"
            if page == 1:
                body = [dict(STRAVA_ACTIVITY, id=n) for n in range(PAGE_SIZE)]
            else:
                body = [dict(STRAVA_ACTIVITY, id=1000)]
            return httpx.Response(200, content=json.dumps(body))

        async with StravaClient("token", transport=_transport(handler)) as client:
            activities = await client.list_activities(date(2024, 2, 1), date(2024, 3, 12))

        assert pages == [1, 2]
        assert len(activities) == PAGE_SIZE + 1

    @pytest.mark.asyncio
    async def test_epoch_window(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return httpx.Response(200, json=[])

        async with StravaClient("token", transport=_transport(handler)) as client:
            assert await client.list_activities(date(2024, 3, 1), date(2024, 3, 1)) == []

        assert int(seen["before"]) - int(seen["after"]) == 86400
        assert seen["per_page"] == str(PAGE_SIZE)

    @pytest.mark.asyncio
    async def test_body_that_is_not_json(self):
        transport = _transport(lambda r: httpx.Response(200, content=b"<html>maintenance</html>"))
        async with StravaClient("token", transport=transport) as client:
            with pytest.raises(SourceUnavailableError) as exc_info:
                await client.list_activities(date(2024, 3, 1))
        assert "not JSON" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_object_instead_of_list(self):
        transport = _transport(lambda r: httpx.Response(200, json={"message": "Record Not Found"}))
        async with StravaClient("token", transport=transport) as client:
            with pytest.raises(SourceUnavailableError):
                await client.list_activities(date(2024, 3, 1))

    @pytest.mark.asyncio
    async def test_malformed_record_is_skipped(self):
        body = [
            STRAVA_ACTIVITY,
            dict(STRAVA_ACTIVITY, id=112, start_date_local="yesterday"),
            dict(STRAVA_ACTIVITY, id=113, moving_time=-60),
            "not-a-record",
        ]
        transport = _transport(lambda r: httpx.Response(200, json=body))
        async with StravaClient("token", transport=transport) as client:
            activities = await client.list_activities(date(2024, 3, 1))

        assert [a.id for a in activities] == ["111"]
