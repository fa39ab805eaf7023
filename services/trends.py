"""Recording trend aggregations and announcing them on the event channel."""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import logger
from models.database import TrendAnalysis
from models.enums import TimeWindow
from repository.trend_repository import TrendRepository
from utils.time_utils import ensure_utc


class TrendService:
    def __init__(self, db: AsyncSession, events=None):
        self.repository = TrendRepository(db)
        self.events = events

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
        """Append a trend row and publish ``trend_update``.

        ``sentimentChange`` is the difference to the previous window of the
        same (keyword, platform, window type) series, 0 for the first one.
        """
        previous = await self.repository.get_previous(
            keyword, platform, TimeWindow(window_type), ensure_utc(time_window_start)
        )
        trend = await self.repository.record(
            keyword=keyword,
            platform=platform,
            window_type=window_type,
            time_window_start=time_window_start,
            trend_score=trend_score,
            mention_count=mention_count,
            avg_sentiment_score=avg_sentiment_score,
            time_window_end=time_window_end,
            related_keywords=related_keywords,
            geographic_data=geographic_data,
        )

        change = 0.0
        if previous is not None:
            change = float(trend.avg_sentiment_score) - float(previous.avg_sentiment_score)
        logger.info(
            f"Trend '{keyword}' on {platform} ({TimeWindow(window_type).label}): "
            f"score {trend.trend_score}, {mention_count} mentions"
        )

        if self.events is not None:
            await self.events.publish_trend_update(
                keyword=trend.keyword,
                new_mentions=trend.mention_count,
                sentiment_change=round(change, 4),
                trend_score=float(trend.trend_score),
            )
        return trend
