"""Async repository for trend aggregations and keyword links."""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import storage_retry
from core.errors import NotFound, ValidationError
from core.logger import logger
from models.database import TrendAnalysis, TrendKeyword
from models.enums import TimeWindow
from utils.time_utils import ensure_utc


class TrendRepository:
    """TrendAnalysis rows are append-only; TrendKeyword links are upserted."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @storage_retry
    async def record(
        self,
        keyword: str,
        platform: str,
        window_type: TimeWindow,
        time_window_start: datetime,
        trend_score,
        mention_count: int,
        avg_sentiment_score,
        time_window_end: Optional[datetime] = None,
        related_keywords: Optional[list] = None,
        geographic_data: Optional[dict] = None,
    ) -> TrendAnalysis:
        """Append a new aggregation row for (keyword, platform, window)."""
        window_type = TimeWindow(window_type)
        start = ensure_utc(time_window_start)
        end = ensure_utc(time_window_end) if time_window_end else start + timedelta(minutes=window_type.minutes)
        if end <= start:
            raise ValidationError("timeWindowEnd", "must be after timeWindowStart", "OUT_OF_RANGE")

        trend = TrendAnalysis(
            keyword=keyword,
            platform=platform,
            window_type=window_type,
            time_window_start=start,
            time_window_end=end,
            trend_score=trend_score,
            mention_count=mention_count,
            avg_sentiment_score=avg_sentiment_score,
            related_keywords=related_keywords or [],
            geographic_data=geographic_data,
        )
        self.db.add(trend)
        await self.db.commit()
        logger.debug(f"Recorded trend '{keyword}' on {platform} ({window_type.label} from {start})")
        return trend

    @storage_retry
    async def get(self, trend_analysis_id: UUID) -> Optional[TrendAnalysis]:
        return await self.db.get(TrendAnalysis, trend_analysis_id)

    @storage_retry
    async def get_previous(
        self, keyword: str, platform: str, window_type: TimeWindow, before: datetime
    ) -> Optional[TrendAnalysis]:
        """Latest row of the same series whose window started before ``before``."""
        query = (
            select(TrendAnalysis)
            .where(
                func.lower(TrendAnalysis.keyword) == keyword.strip().lower(),
                TrendAnalysis.platform == platform,
                TrendAnalysis.window_type == window_type,
                TrendAnalysis.time_window_start < before,
            )
            .order_by(desc(TrendAnalysis.time_window_start), desc(TrendAnalysis.created_at))
            .limit(1)
        )
        return (await self.db.execute(query)).scalars().first()

    @storage_retry
    async def link_keyword(
        self, post_id: UUID, trend_analysis_id: UUID, keyword: str, relevance_score
    ) -> TrendKeyword:
        """Create or refresh the relevance of a post inside a trend window."""
        if await self.db.get(TrendAnalysis, trend_analysis_id) is None:
            raise NotFound("TrendAnalysis", trend_analysis_id)

        link = await self.db.get(TrendKeyword, (post_id, trend_analysis_id, keyword))
        if link is None:
            link = TrendKeyword(
                post_id=post_id,
                trend_analysis_id=trend_analysis_id,
                keyword=keyword,
                relevance_score=relevance_score,
            )
            self.db.add(link)
        else:
            link.relevance_score = relevance_score
        await self.db.commit()
        return link

    @storage_retry
    async def get_keywords_for_post(self, post_id: UUID) -> List[TrendKeyword]:
        query = (
            select(TrendKeyword)
            .where(TrendKeyword.post_id == post_id)
            .order_by(desc(TrendKeyword.relevance_score))
        )
        return list((await self.db.execute(query)).scalars().all())

    @storage_retry
    async def find_current(
        self, keywords: Iterable[str], window_type: TimeWindow, at: datetime, platform: Optional[str] = None
    ) -> List[TrendAnalysis]:
        """Trend rows whose window contains ``at`` for any of the keywords."""
        lowered = sorted({k.strip().lower() for k in keywords if k and k.strip()})
        if not lowered:
            return []
        query = select(TrendAnalysis).where(
            func.lower(TrendAnalysis.keyword).in_(lowered),
            TrendAnalysis.window_type == window_type,
            TrendAnalysis.time_window_start <= at,
            TrendAnalysis.time_window_end > at,
        )
        if platform:
            query = query.where(TrendAnalysis.platform == platform)
        return list((await self.db.execute(query)).scalars().all())
