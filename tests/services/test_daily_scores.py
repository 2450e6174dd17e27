"""Tests for the daily calculation pass."""

import asyncio
import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import httpx

from conftest import health_store_for, make_activity

from readiness_engine.cache import FetchOnceCache
from readiness_engine.config import Settings
from readiness_engine.db.daily_records import InMemoryDailyRecordStore
from readiness_engine.exceptions import (
    CalculationTimeoutError,
    NoScoreAvailableError,
    SourceUnavailableError,
)
from readiness_engine.integrations.intervals import IntervalsClient
from readiness_engine.integrations.memory import StaticActivityProvider
from readiness_engine.integrations.strava import StravaClient
from readiness_engine.models.activity import Provider
from readiness_engine.models.records import DailyRecord
from readiness_engine.models.scores import IllnessIndicator, Severity
from readiness_engine.models.signals import DailyMetrics
from readiness_engine.services.daily_scores import DailyScoreService, build_brief_request
from readiness_engine.services.illness import IllnessDetectionService, IllnessDetector


class CountingProvider(StaticActivityProvider):
    def __init__(self, provider, activities=()):
        super().__init__(provider, activities)
        self.calls = 0

    async def list_activities(self, since, until=None):
        self.calls += 1
        return await super().list_activities(since, until)


class BlockingProvider(StaticActivityProvider):
    """Provider whose fetch waits until released."""

    def __init__(self, provider, activities=()):
        super().__init__(provider, activities)
        self.release = asyncio.Event()

    async def list_activities(self, since, until=None):
        await self.release.wait()
        return await super().list_activities(since, until)


class WellnessStub(StaticActivityProvider):
    """Activity provider that also reports daily wellness."""

    def __init__(self, provider, metrics=()):
        super().__init__(provider)
        self.metrics = list(metrics)

    async def wellness(self, since, until=None):
        return [m for m in self.metrics if since <= m.date and (until is None or m.date <= until)]


class FailingProvider(StaticActivityProvider):
    async def list_activities(self, since, until=None):
        raise SourceUnavailableError("connection refused", self.provider.value)


@pytest.fixture
def store():
    return InMemoryDailyRecordStore()


@pytest.fixture
def make_service(settings, health_store, store, day):
    def factory(**kwargs):
        options = dict(
            settings=settings,
            health_store=health_store,
            store=store,
            today=lambda: day,
        )
        options.update(kwargs)
        return DailyScoreService(**options)

    return factory


class TestCalculate:
    @pytest.mark.asyncio
    async def test_steady_day(self, make_service, store, day):
        scores = await make_service().calculate()

        assert scores.date == day
        for score in (scores.recovery, scores.sleep):
            assert isinstance(score.value, int)
            assert 0 <= score.value <= 100
        assert scores.recovery.value >= 90
        assert 0 <= scores.stress.acute <= 100
        assert scores.alert.triggered is False
        assert scores.illness is None
        assert scores.unavailable_sources == []

        record = store.get(day)
        assert record.recovery_score == scores.recovery.value
        assert record.sleep_score == scores.sleep.value
        assert record.stress_threshold == 50

    @pytest.mark.asyncio
    async def test_same_day_is_computed_once(self, make_service, day):
        service = make_service()
        first = await service.calculate(day)
        second = await service.calculate(day)

        assert second is first
        assert service.computations == 1
        assert service.cached_result(day) is first

    @pytest.mark.asyncio
    async def test_force_and_new_day_recompute(self, make_service, store, day):
        next_day = day + timedelta(days=1)
        indicator = IllnessIndicator(date=day, severity=Severity.MILD, confidence=0.6)
        detector = IllnessDetector()
        detector.detect = MagicMock(side_effect=lambda bundle: indicator if bundle.date == day else None)
        service = make_service(
            health_store=health_store_for(next_day, days=9),
            illness_service=IllnessDetectionService(detector),
        )

        first = await service.calculate(day)
        await service.calculate(day, force=True)
        assert service.computations == 2
        assert first.illness is indicator

        scores = await service.calculate(next_day)
        assert service.computations == 3
        assert service.cached_result(day) is None
        assert scores.illness is None
        assert store.get(next_day).illness is None
        assert store.get(day).illness["severity"] == "mild"

    @pytest.mark.asyncio
    async def test_concurrent_request_is_skipped(self, make_service, day):
        blocking = BlockingProvider(Provider.INTERVALS)
        service = make_service(intervals=blocking)

        task = asyncio.create_task(service.calculate(day))
        await asyncio.sleep(0)
        assert service.is_running is True

        assert await service.calculate(day, force=True) is None

        blocking.release.set()
        result = await task
        assert result is not None
        assert service.computations == 1
        assert service.is_running is False

    @pytest.mark.asyncio
    async def test_timeout_publishes_nothing(self, health_store, store, day):
        settings = Settings(_env_file=None, calculation_timeout_seconds=0.05)
        blocking = BlockingProvider(Provider.STRAVA)
        service = DailyScoreService(
            settings=settings,
            cache=FetchOnceCache(),
            strava=blocking,
            health_store=health_store,
            store=store,
        )

        with pytest.raises(CalculationTimeoutError):
            await service.calculate(day)

        assert service.latest is None
        assert len(store) == 0
        assert service.is_running is False

    @pytest.mark.asyncio
    async def test_timeout_keeps_previous_result(self, health_store, store, day):
        settings = Settings(_env_file=None)
        blocking = BlockingProvider(Provider.STRAVA)
        blocking.release.set()
        service = DailyScoreService(
            settings=settings, strava=blocking, health_store=health_store, store=store
        )
        previous = await service.calculate(day)

        blocking.release.clear()
        settings.calculation_timeout_seconds = 0.05
        with pytest.raises(CalculationTimeoutError):
            await service.calculate(day, force=True)
        assert service.latest is previous

    @pytest.mark.asyncio
    async def test_provider_failure_is_absorbed(self, make_service):
        scores = await make_service(intervals=FailingProvider(Provider.INTERVALS)).calculate()

        assert scores.unavailable_sources == ["intervals"]
        assert scores.recovery is not None

    @pytest.mark.asyncio
    async def test_unreadable_provider_response_is_absorbed(self, make_service):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, content=b"<html>maintenance</html>"))
        async with StravaClient("token", transport=transport) as strava:
            scores = await make_service(strava=strava).calculate()

        assert scores.unavailable_sources == ["strava"]
        assert scores.recovery is not None

    @pytest.mark.asyncio
    async def test_unexpected_provider_error_is_absorbed(self, make_service):
        provider = StaticActivityProvider(Provider.INTERVALS)
        provider.list_activities = AsyncMock(side_effect=KeyError("icu_training_load"))

        scores = await make_service(intervals=provider).calculate()

        assert scores.unavailable_sources == ["intervals"]
        assert scores.sleep is not None

    @pytest.mark.asyncio
    async def test_no_signal_at_all(self, settings, day):
        service = DailyScoreService(settings=settings, today=lambda: day)
        with pytest.raises(NoScoreAvailableError):
            await service.calculate()
        assert service.latest is None

    @pytest.mark.asyncio
    async def test_forced_recompute_reuses_cached_fetches(self, make_service, day):
        provider = CountingProvider(Provider.STRAVA)
        service = make_service(strava=provider, cache=FetchOnceCache())

        await service.calculate(day)
        await service.calculate(day, force=True)

        assert service.computations == 2
        assert provider.calls == 1


class TestFusion:
    @pytest.mark.asyncio
    async def test_cross_posted_activity_counted_once(self, make_service, day):
        start = datetime.combine(day, datetime.min.time()).replace(hour=7)
        intervals = StaticActivityProvider(
            Provider.INTERVALS,
            [make_activity(Provider.INTERVALS, "i1", start, training_stress=80, platform_ctl=60, platform_atl=70)],
        )
        strava = StaticActivityProvider(
            Provider.STRAVA,
            [make_activity(Provider.STRAVA, "s1", start + timedelta(minutes=70), avg_hr=150)],
        )

        scores = await make_service(intervals=intervals, strava=strava).calculate()

        assert len(scores.activities) == 1
        assert scores.training_load.source == "platform"
        assert scores.bundle.tsb == -10
        assert "form" in scores.recovery.sub_scores
        assert "training_load" in scores.stress.contributions

        brief = build_brief_request(scores)
        assert brief.target_tss_low == 48
        assert brief.target_tss_high == 90
        assert [a.id for a in brief.completed_activities] == ["i1"]
        assert brief.tsb == -10.0

    @pytest.mark.asyncio
    async def test_stress_history_from_records(self, make_service, store, day):
        for offset in range(1, 11):
            store.upsert(DailyRecord(date=day - timedelta(days=offset), stress_acute=0))

        scores = await make_service().calculate()

        assert scores.alert.adaptive is True
        assert scores.alert.history_size == 10
        assert scores.alert.threshold == 40

    @pytest.mark.asyncio
    async def test_sleep_score_baseline_from_records(self, make_service, store, day):
        for offset in range(1, 8):
            store.upsert(DailyRecord(date=day - timedelta(days=offset), sleep_score=90))

        scores = await make_service().calculate()
        assert scores.bundle.sleep_baseline.score == 90.0

    @pytest.mark.asyncio
    async def test_platform_wellness_without_health_store(self, settings, store, day):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/wellness"):
                return httpx.Response(
                    200,
                    json=[
                        {"id": (day - timedelta(days=offset)).isoformat(), "hrv": 50.0, "restingHR": 50}
                        for offset in range(8)
                    ],
                )
            return httpx.Response(200, json=[])

        async with IntervalsClient("key", transport=httpx.MockTransport(handler)) as intervals:
            service = DailyScoreService(settings=settings, intervals=intervals, store=store)
            scores = await service.calculate(day)

        assert scores.baselines.hrv == 50.0
        assert {"hrv", "rhr"} <= set(scores.recovery.sub_scores)
        assert scores.unavailable_sources == []

    @pytest.mark.asyncio
    async def test_health_store_wins_over_platform_wellness(self, make_service, day):
        metrics = [
            DailyMetrics(date=day - timedelta(days=offset), hrv=80.0, sleep_score=70)
            for offset in range(8)
        ]
        scores = await make_service(intervals=WellnessStub(Provider.INTERVALS, metrics)).calculate()

        assert scores.baselines.hrv == 50.0
        assert scores.bundle.sleep_baseline.score == 70.0

    @pytest.mark.asyncio
    async def test_existing_summary_is_kept(self, make_service, store, day):
        store.upsert(DailyRecord(date=day, summary="Easy spin advised", brief_text="Take it easy"))

        await make_service().calculate()

        record = store.get(day)
        assert record.summary == "Easy spin advised"
        assert record.brief_text == "Take it easy"
        assert record.recovery_score is not None

    @pytest.mark.asyncio
    async def test_illness_skips_overnight_penalty(self, settings, store, day):
        indicator = IllnessIndicator(date=day, severity=Severity.MODERATE, confidence=0.8)
        detector = IllnessDetector()
        detector.detect = MagicMock(return_value=indicator)
        sick_store = health_store_for(day, today_hrv=30.0)

        service = DailyScoreService(
            settings=settings,
            health_store=sick_store,
            store=store,
            illness_service=IllnessDetectionService(detector),
        )
        scores = await service.calculate(day)

        assert scores.illness is indicator
        assert store.get(day).illness["severity"] == "moderate"

        plain = await DailyScoreService(settings=settings, health_store=sick_store).calculate(day)
        assert scores.recovery.value > plain.recovery.value

    @pytest.mark.asyncio
    async def test_to_dict(self, make_service):
        data = (await make_service().calculate()).to_dict()
        assert set(data) >= {"recovery", "sleep", "stress", "alert", "training_load", "baselines"}
        assert data["baselines"]["hrv"] == 50.0
