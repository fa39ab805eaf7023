"""Async repository for sentiment analysis results."""

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import storage_retry
from core.errors import DuplicateAnalysis
from core.logger import logger
from models.database import SentimentAnalysis, SocialMediaPost


class SentimentRepository:
    """One analysis per post; re-analysis replaces the previous row."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @storage_retry
    async def save(self, post_id: UUID, **fields) -> SentimentAnalysis:
        """Insert the analysis for a post, replacing any existing one."""
        analysis = SentimentAnalysis(post_id=post_id, **fields)
        if not analysis.is_consistent():
            logger.warning(
                f"Analysis for post {post_id}: overall sentiment "
                f"{analysis.overall_sentiment.name} disagrees with dominant score "
                f"{analysis.dominant_polarity()}"
            )

        replaced = await self.db.execute(
            delete(SentimentAnalysis).where(SentimentAnalysis.post_id == post_id)
        )
        self.db.add(analysis)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateAnalysis(f"Post {post_id} was analysed concurrently") from exc

        if replaced.rowcount:
            logger.info(f"Replaced sentiment analysis for post {post_id}")
        return analysis

    @storage_retry
    async def delete_for_post(self, post_id: UUID) -> int:
        """Remove the analysis of a post whose processing did not complete."""
        result = await self.db.execute(delete(SentimentAnalysis).where(SentimentAnalysis.post_id == post_id))
        await self.db.commit()
        if result.rowcount:
            logger.info(f"Discarded sentiment analysis for post {post_id}")
        return result.rowcount

    @storage_retry
    async def get_by_id(self, analysis_id: UUID) -> Optional[SentimentAnalysis]:
        return await self.db.get(SentimentAnalysis, analysis_id)

    @storage_retry
    async def get_by_post_id(self, post_id: UUID) -> Optional[SentimentAnalysis]:
        query = select(SentimentAnalysis).where(SentimentAnalysis.post_id == post_id)
        return (await self.db.execute(query)).scalars().first()

    @storage_retry
    async def get_recent(self, limit: int) -> List[Tuple[SentimentAnalysis, SocialMediaPost]]:
        """Most recent analyses joined with their (non-deleted) posts."""
        query = (
            select(SentimentAnalysis, SocialMediaPost)
            .join(SocialMediaPost, SocialMediaPost.id == SentimentAnalysis.post_id)
            .where(SocialMediaPost.is_deleted.is_(False))
            .order_by(desc(SentimentAnalysis.analyzed_at))
            .limit(limit)
        )
        rows = (await self.db.execute(query)).all()
        return [(row[0], row[1]) for row in rows]
