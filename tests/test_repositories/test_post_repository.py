"""Tests for PostRepository against SQLite."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from core.errors import DuplicatePost, NotFound, ValidationError
from interfaces.post_repository import PostFilters
from models.database import ProcessingQueue, SentimentAnalysis, SocialMediaPost
from models.enums import PostStatus, SentimentType
from models.schemas.base import PaginationParams
from repository.post_repository import PostRepository, sentiment_condition
from repository.sentiment_repository import SentimentRepository
from services.queue.service import QueueService
from utils.time_utils import utcnow


def analysis_fields(sentiment: SentimentType, positive=0.1, negative=0.1):
    return {
        "positive_score": positive,
        "negative_score": negative,
        "neutral_score": 0.5,
        "overall_sentiment": sentiment,
        "confidence_score": 0.9,
        "model_version": "test-1",
        "processing_time": timedelta(milliseconds=120),
    }


class TestCreate:
    @pytest.mark.asyncio
    async def test_new_post_is_pending(self, post_factory):
        post = await post_factory()
        assert post.status == PostStatus.PENDING
        assert post.is_deleted is False
        assert post.language == "en"

    @pytest.mark.asyncio
    async def test_duplicate_source_on_same_platform_rejected(self, post_factory):
        await post_factory(source_id="abc", platform="reddit")
        with pytest.raises(DuplicatePost) as exc_info:
            await post_factory(source_id="abc", platform="reddit")
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_same_source_on_other_platform_allowed(self, post_factory):
        await post_factory(source_id="abc", platform="reddit")
        other = await post_factory(source_id="abc", platform="twitter")
        assert other.platform == "twitter"

    @pytest.mark.asyncio
    async def test_posts_without_source_id_never_conflict(self, post_factory):
        first = await post_factory(source_id=None)
        second = await post_factory(source_id=None)
        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_oversized_content_rejected(self, post_factory):
        with pytest.raises(ValidationError):
            await post_factory(content="x" * 4001)


class TestGetPosts:
    @pytest.mark.asyncio
    async def test_pagination_page_two(self, db, post_factory):
        now = utcnow()
        for i in range(25):
            await post_factory(timestamp=now - timedelta(minutes=i))

        posts, total = await PostRepository(db).get_posts(
            PostFilters(), PaginationParams(page=2, page_size=10)
        )

        assert total == 25
        assert len(posts) == 10
        # newest first: page 2 starts with the 11th newest
        assert posts[0].content == "Post number 11 about python"

    @pytest.mark.asyncio
    async def test_last_page_is_partial(self, db, post_factory):
        for _ in range(25):
            await post_factory()
        posts, total = await PostRepository(db).get_posts(PostFilters(), PaginationParams(page=3, page_size=10))
        assert total == 25
        assert len(posts) == 5

    @pytest.mark.asyncio
    async def test_platform_and_date_filters(self, db, post_factory):
        now = utcnow()
        await post_factory(platform="reddit", timestamp=now - timedelta(days=3))
        await post_factory(platform="reddit", timestamp=now)
        await post_factory(platform="twitter", timestamp=now)

        posts, total = await PostRepository(db).get_posts(
            PostFilters(platform="reddit", from_date=now - timedelta(days=1)),
            PaginationParams(),
        )
        assert total == 1
        assert posts[0].platform == "reddit"

    @pytest.mark.asyncio
    async def test_text_query_matches_content_case_insensitively(self, db, post_factory):
        await post_factory(content="FastAPI is great")
        await post_factory(content="Nothing to see")
        posts, total = await PostRepository(db).get_posts(PostFilters(query="fastapi"), PaginationParams())
        assert total == 1
        assert posts[0].content == "FastAPI is great"

    @pytest.mark.asyncio
    async def test_sentiment_filter_polarity_and_exact_label(self, db, post_factory):
        sentiments = SentimentRepository(db)
        very = await post_factory()
        mild = await post_factory()
        negative = await post_factory()
        await sentiments.save(very.id, **analysis_fields(SentimentType.VERY_POSITIVE, positive=0.9))
        await sentiments.save(mild.id, **analysis_fields(SentimentType.POSITIVE, positive=0.6))
        await sentiments.save(negative.id, **analysis_fields(SentimentType.NEGATIVE, negative=0.7))

        repo = PostRepository(db)
        _, positive_total = await repo.get_posts(PostFilters(sentiment="positive"), PaginationParams())
        exact, exact_total = await repo.get_posts(PostFilters(sentiment="very_positive"), PaginationParams())

        assert positive_total == 2
        assert exact_total == 1
        assert exact[0].id == very.id

    def test_unknown_sentiment_filter(self):
        with pytest.raises(ValidationError):
            sentiment_condition("happy")


class TestDelete:
    @pytest.mark.asyncio
    async def test_soft_delete_hides_from_list_but_not_lookup(self, db, post_factory):
        post = await post_factory()
        repo = PostRepository(db)

        await repo.soft_delete(post.id)

        _, total = await repo.get_posts(PostFilters(), PaginationParams())
        assert total == 0
        found = await repo.get_by_id(post.id)
        assert found is not None
        assert found.is_deleted is True

    @pytest.mark.asyncio
    async def test_soft_delete_keeps_analysis(self, db, post_factory):
        post = await post_factory()
        await SentimentRepository(db).save(post.id, **analysis_fields(SentimentType.NEUTRAL))
        await PostRepository(db).soft_delete(post.id)
        assert await SentimentRepository(db).get_by_post_id(post.id) is not None

    @pytest.mark.asyncio
    async def test_hard_delete_cascades(self, db, post_factory):
        post = await post_factory()
        await SentimentRepository(db).save(post.id, **analysis_fields(SentimentType.NEUTRAL))
        await QueueService(db).enqueue(post.id)

        await PostRepository(db).hard_delete(post.id)

        for model in (SocialMediaPost, SentimentAnalysis, ProcessingQueue):
            column = model.id if model is SocialMediaPost else model.post_id
            count = (await db.execute(select(func.count()).where(column == post.id))).scalar()
            assert count == 0

    @pytest.mark.asyncio
    async def test_delete_unknown_post(self, db):
        from uuid import uuid4

        with pytest.raises(NotFound):
            await PostRepository(db).hard_delete(uuid4())
