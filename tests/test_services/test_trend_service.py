"""Tests for TrendService recording and trend_update events."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from models.enums import TimeWindow
from services.trends import TrendService

START = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


async def record(service, start, avg, keyword="python", platform="reddit", mentions=10):
    return await service.record(
        keyword=keyword,
        platform=platform,
        window_type=TimeWindow.FIVE_MINUTES,
        time_window_start=start,
        trend_score=4.25,
        mention_count=mentions,
        avg_sentiment_score=avg,
    )


class TestTrendService:
    @pytest.mark.asyncio
    async def test_first_window_has_no_sentiment_change(self, db):
        events = AsyncMock()
        trend = await record(TrendService(db, events), START, 0.5)

        assert trend.time_window_end == START + timedelta(minutes=5)
        events.publish_trend_update.assert_awaited_once_with(
            keyword="python", new_mentions=10, sentiment_change=0.0, trend_score=4.25
        )

    @pytest.mark.asyncio
    async def test_sentiment_change_against_previous_window(self, db):
        events = AsyncMock()
        service = TrendService(db, events)
        await record(service, START, 0.5)
        await record(service, START + timedelta(minutes=5), 0.2, mentions=3)

        last_call = events.publish_trend_update.await_args_list[-1]
        assert last_call.kwargs["sentiment_change"] == pytest.approx(-0.3)
        assert last_call.kwargs["new_mentions"] == 3

    @pytest.mark.asyncio
    async def test_other_platform_is_a_separate_series(self, db):
        events = AsyncMock()
        service = TrendService(db, events)
        await record(service, START, 0.9, platform="twitter")
        await record(service, START + timedelta(minutes=5), 0.1)

        assert events.publish_trend_update.await_args.kwargs["sentiment_change"] == 0.0

    @pytest.mark.asyncio
    async def test_without_events(self, db):
        trend = await record(TrendService(db), START, -0.4)
        assert float(trend.avg_sentiment_score) == pytest.approx(-0.4)
