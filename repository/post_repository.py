"""Async repository for social media posts."""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import asc, delete, desc, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.database import storage_retry
from core.errors import DuplicatePost, NotFound, ValidationError, field_detail
from core.logger import logger
from interfaces.post_repository import IPostRepository, PostFilters
from models.database import SentimentAnalysis, SocialMediaPost
from models.enums import PostStatus, SentimentType
from models.schemas.base import PaginationParams
from utils.time_utils import utcnow

SORT_COLUMNS = {
    "timestamp": SocialMediaPost.timestamp,
    "created_at": SocialMediaPost.created_at,
    "createdAt": SocialMediaPost.created_at,
    "processed_at": SocialMediaPost.processed_at,
    "processedAt": SocialMediaPost.processed_at,
    "platform": SocialMediaPost.platform,
    "up_votes": SocialMediaPost.up_votes,
    "upVotes": SocialMediaPost.up_votes,
}

_POLARITY_FILTERS = {
    "positive": lambda col: col > SentimentType.NEUTRAL,
    "negative": lambda col: col < SentimentType.NEUTRAL,
    "neutral": lambda col: col == SentimentType.NEUTRAL,
}


def sentiment_condition(value: str):
    """Build the WHERE clause for a sentiment filter value."""
    label = value.strip().lower()
    column = SentimentAnalysis.overall_sentiment
    if label in _POLARITY_FILTERS:
        return _POLARITY_FILTERS[label](column)
    try:
        return column == SentimentType.from_label(label)
    except ValueError:
        raise ValidationError("sentimentType", f"unknown sentiment type '{value}'", "INVALID_ENUM") from None


class PostRepository(IPostRepository):
    """Async repository implementation for posts."""

    def __init__(self, db: AsyncSession):
        """Initialize with async database session."""
        self.db = db

    async def _find_by_source(self, source_id: str, platform: str) -> Optional[SocialMediaPost]:
        query = select(SocialMediaPost).where(
            SocialMediaPost.source_id == source_id, SocialMediaPost.platform == platform
        )
        return (await self.db.execute(query)).scalars().first()

    @storage_retry
    async def create(self, **fields) -> SocialMediaPost:
        """Insert a new post at Pending."""
        post = SocialMediaPost(**fields)
        post.status = PostStatus.PENDING
        if post.timestamp is None:
            post.timestamp = utcnow()

        if post.source_id and await self._find_by_source(post.source_id, post.platform):
            raise self._duplicate(post)

        self.db.add(post)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning(f"Concurrent insert of sourceId={post.source_id} platform={post.platform}")
            raise self._duplicate(post) from exc

        logger.debug(f"Created post {post.id} (platform={post.platform}, sourceId={post.source_id})")
        return post

    @staticmethod
    def _duplicate(post: SocialMediaPost) -> DuplicatePost:
        return DuplicatePost(
            f"Post with sourceId '{post.source_id}' already exists on {post.platform}",
            details=[field_detail("sourceId", "duplicate (sourceId, platform)", "DUPLICATE_POST")],
        )

    @storage_retry
    async def get_by_id(self, post_id: UUID) -> Optional[SocialMediaPost]:
        """Get post by ID with its analysis; soft-deleted posts are returned too."""
        query = (
            select(SocialMediaPost)
            .options(selectinload(SocialMediaPost.sentiment_analysis))
            .where(SocialMediaPost.id == post_id)
        )
        post = (await self.db.execute(query)).scalars().first()
        if post is None:
            logger.debug(f"Post {post_id} not found")
        return post

    async def require(self, post_id: UUID) -> SocialMediaPost:
        post = await self.get_by_id(post_id)
        if post is None:
            raise NotFound("Post", post_id)
        return post

    def _apply_filters(self, query, filters: PostFilters):
        if not filters.include_deleted:
            query = query.where(SocialMediaPost.is_deleted.is_(False))
        if filters.platform:
            query = query.where(SocialMediaPost.platform == filters.platform)
        if filters.from_date:
            query = query.where(SocialMediaPost.timestamp >= filters.from_date)
        if filters.to_date:
            query = query.where(SocialMediaPost.timestamp <= filters.to_date)
        if filters.query:
            needle = filters.query.strip().lower()
            query = query.where(
                or_(
                    func.lower(SocialMediaPost.content).contains(needle, autoescape=True),
                    func.lower(SocialMediaPost.user_name).contains(needle, autoescape=True),
                )
            )
        if filters.sentiment:
            query = query.join(
                SentimentAnalysis, SentimentAnalysis.post_id == SocialMediaPost.id
            ).where(sentiment_condition(filters.sentiment))
        return query

    @storage_retry
    async def get_posts(
        self,
        filters: PostFilters,
        pagination: PaginationParams,
        sort_by: str = "timestamp",
        sort_order: str = "desc",
    ) -> Tuple[List[SocialMediaPost], int]:
        """Get paginated posts with filtering and sorting."""
        query = self._apply_filters(select(SocialMediaPost), filters)

        # Get total count
        count_query = select(func.count()).select_from(query.subquery())
        total_count = (await self.db.execute(count_query)).scalar() or 0

        sort_column = SORT_COLUMNS.get(sort_by, SocialMediaPost.timestamp)
        direction = asc if sort_order.lower() == "asc" else desc
        query = query.order_by(direction(sort_column), direction(SocialMediaPost.id))

        query = (
            query.options(selectinload(SocialMediaPost.sentiment_analysis))
            .offset(pagination.offset)
            .limit(pagination.page_size)
        )
        posts = (await self.db.execute(query)).scalars().all()

        logger.debug(
            f"Retrieved {len(posts)} posts out of {total_count} total "
            f"(page {pagination.page}, size {pagination.page_size})"
        )
        return list(posts), total_count

    @storage_retry
    async def soft_delete(self, post_id: UUID) -> SocialMediaPost:
        """Hide a post from list queries; its analysis and keyword rows stay."""
        post = await self.require(post_id)
        post.is_deleted = True
        await self.db.commit()
        logger.info(f"Soft-deleted post {post_id}")
        return post

    @storage_retry
    async def hard_delete(self, post_id: UUID) -> None:
        """Remove the post; analysis, queue and keyword rows cascade."""
        result = await self.db.execute(delete(SocialMediaPost).where(SocialMediaPost.id == post_id))
        if result.rowcount == 0:
            await self.db.rollback()
            raise NotFound("Post", post_id)
        await self.db.commit()
        logger.info(f"Hard-deleted post {post_id}")
