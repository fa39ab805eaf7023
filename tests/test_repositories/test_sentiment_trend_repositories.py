"""Tests for SentimentRepository and TrendRepository."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from core.errors import DuplicateAnalysis, NotFound, ValidationError
from models.database import SentimentAnalysis, TrendAnalysis
from models.enums import SentimentType, TimeWindow
from repository.post_repository import PostRepository
from repository.sentiment_repository import SentimentRepository
from repository.trend_repository import TrendRepository
from utils.time_utils import ensure_utc, utcnow


def scores(**overrides):
    fields = {
        "positive_score": 0.8,
        "negative_score": 0.05,
        "neutral_score": 0.15,
        "overall_sentiment": SentimentType.POSITIVE,
        "confidence_score": 0.91,
        "model_version": "roberta-v2",
        "processing_time": timedelta(milliseconds=250),
        "extracted_keywords": ["python", "asyncio"],
    }
    fields.update(overrides)
    return fields


class TestSentimentRepository:
    @pytest.mark.asyncio
    async def test_scores_round_trip_with_four_decimals(self, db, session_factory, post_factory):
        post = await post_factory()
        await SentimentRepository(db).save(post.id, **scores())

        async with session_factory() as other:
            stored = await SentimentRepository(other).get_by_post_id(post.id)

        assert stored.positive_score == Decimal("0.8000")
        assert stored.negative_score == Decimal("0.0500")
        assert stored.overall_sentiment is SentimentType.POSITIVE
        assert stored.processing_time == timedelta(milliseconds=250)
        assert stored.extracted_keywords == ["python", "asyncio"]

    @pytest.mark.asyncio
    async def test_reanalysis_replaces_previous_row(self, db, post_factory):
        post = await post_factory()
        repo = SentimentRepository(db)
        first = await repo.save(post.id, **scores())
        second = await repo.save(
            post.id, **scores(positive_score=0.1, negative_score=0.8, overall_sentiment=SentimentType.NEGATIVE)
        )

        count = (
            await db.execute(select(func.count()).where(SentimentAnalysis.post_id == post.id))
        ).scalar()
        assert count == 1
        assert second.id != first.id
        current = await repo.get_by_post_id(post.id)
        assert current.overall_sentiment is SentimentType.NEGATIVE

    @pytest.mark.asyncio
    async def test_out_of_range_scores_are_clamped(self, db, post_factory):
        post = await post_factory()
        analysis = await SentimentRepository(db).save(post.id, **scores(confidence_score=1.7))
        assert analysis.confidence_score == Decimal("1.0000")

    @pytest.mark.asyncio
    async def test_recent_excludes_soft_deleted_posts(self, db, post_factory):
        visible = await post_factory()
        hidden = await post_factory()
        repo = SentimentRepository(db)
        await repo.save(visible.id, **scores())
        await repo.save(hidden.id, **scores())
        await PostRepository(db).soft_delete(hidden.id)

        rows = await repo.get_recent(10)

        assert [post.id for _, post in rows] == [visible.id]

    @pytest.mark.asyncio
    async def test_concurrent_saves_leave_one_row(self, session_factory, post_factory):
        post_id = (await post_factory()).id

        async def save_one(positive):
            async with session_factory() as session:
                await SentimentRepository(session).save(post_id, **scores(positive_score=positive))

        await asyncio.gather(*(save_one(p) for p in (0.6, 0.7, 0.8, 0.9)))

        async with session_factory() as session:
            count = (
                await session.execute(select(func.count()).where(SentimentAnalysis.post_id == post_id))
            ).scalar()
        assert count == 1

    @pytest.mark.asyncio
    async def test_unique_violation_becomes_duplicate_analysis(self, db, session_factory, post_factory):
        post = await post_factory()
        post_id = post.id
        db.commit = AsyncMock(
            side_effect=IntegrityError('INSERT INTO "SentimentAnalyses"', {}, Exception("UNIQUE constraint failed"))
        )

        with pytest.raises(DuplicateAnalysis, match="analysed concurrently"):
            await SentimentRepository(db).save(post_id, **scores())

        async with session_factory() as session:
            assert await SentimentRepository(session).get_by_post_id(post_id) is None


class TestTrendRepository:
    @pytest.mark.asyncio
    async def test_record_defaults_window_end(self, db):
        start = utcnow().replace(second=0, microsecond=0)
        trend = await TrendRepository(db).record(
            keyword="python",
            platform="reddit",
            window_type=TimeWindow.FIFTEEN_MINUTES,
            time_window_start=start,
            trend_score=12.5,
            mention_count=40,
            avg_sentiment_score=0.35,
        )
        assert ensure_utc(trend.time_window_end) - ensure_utc(trend.time_window_start) == timedelta(minutes=15)
        assert trend.trend_score == Decimal("12.5000")

    @pytest.mark.asyncio
    async def test_record_rejects_inverted_window(self, db):
        start = utcnow()
        with pytest.raises(ValidationError):
            await TrendRepository(db).record(
                keyword="python",
                platform="reddit",
                window_type=TimeWindow.ONE_HOUR,
                time_window_start=start,
                time_window_end=start - timedelta(minutes=1),
                trend_score=1,
                mention_count=1,
                avg_sentiment_score=0,
            )

    @pytest.mark.asyncio
    async def test_rows_are_append_only(self, db):
        repo = TrendRepository(db)
        start = utcnow()
        for score in (1, 2):
            await repo.record(
                keyword="python",
                platform="reddit",
                window_type=TimeWindow.FIVE_MINUTES,
                time_window_start=start,
                trend_score=score,
                mention_count=score,
                avg_sentiment_score=0,
            )
        count = (await db.execute(select(func.count()).select_from(TrendAnalysis))).scalar()
        assert count == 2

    @pytest.mark.asyncio
    async def test_get_previous_returns_latest_earlier_window(self, db):
        repo = TrendRepository(db)
        now = utcnow()
        for minutes_ago, score in ((15, 1), (10, 2), (5, 3)):
            await repo.record(
                keyword="Python",
                platform="reddit",
                window_type=TimeWindow.FIVE_MINUTES,
                time_window_start=now - timedelta(minutes=minutes_ago),
                trend_score=score,
                mention_count=1,
                avg_sentiment_score=0,
            )

        previous = await repo.get_previous("python", "reddit", TimeWindow.FIVE_MINUTES, now - timedelta(minutes=5))

        assert previous.trend_score == Decimal("2.0000")

    @pytest.mark.asyncio
    async def test_link_keyword_upserts_relevance(self, db, post_factory):
        post = await post_factory()
        repo = TrendRepository(db)
        trend = await repo.record(
            keyword="python",
            platform="reddit",
            window_type=TimeWindow.FIVE_MINUTES,
            time_window_start=utcnow(),
            trend_score=1,
            mention_count=1,
            avg_sentiment_score=0,
        )

        await repo.link_keyword(post.id, trend.id, "python", 0.4)
        await repo.link_keyword(post.id, trend.id, "python", 0.9)

        links = await repo.get_keywords_for_post(post.id)
        assert len(links) == 1
        assert links[0].relevance_score == Decimal("0.9000")

    @pytest.mark.asyncio
    async def test_link_keyword_requires_trend(self, db, post_factory):
        post = await post_factory()
        with pytest.raises(NotFound):
            await TrendRepository(db).link_keyword(post.id, uuid4(), "python", 0.5)

    @pytest.mark.asyncio
    async def test_find_current_matches_open_windows(self, db):
        repo = TrendRepository(db)
        now = utcnow()
        open_window = await repo.record(
            keyword="Python",
            platform="reddit",
            window_type=TimeWindow.FIVE_MINUTES,
            time_window_start=now - timedelta(minutes=2),
            trend_score=1,
            mention_count=1,
            avg_sentiment_score=0,
        )
        await repo.record(
            keyword="python",
            platform="reddit",
            window_type=TimeWindow.FIVE_MINUTES,
            time_window_start=now - timedelta(minutes=20),
            trend_score=1,
            mention_count=1,
            avg_sentiment_score=0,
        )

        current = await repo.find_current(["PYTHON", "rust"], TimeWindow.FIVE_MINUTES, now, platform="reddit")

        assert [t.id for t in current] == [open_window.id]
