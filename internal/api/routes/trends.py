"""Trends API routes: realtime snapshot, keyword history and trend recording."""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.logger import logger
from internal.api.dependencies import get_event_publisher
from internal.api.params import parse_time_window
from models.schemas.trends import (
    DateRange,
    Granularity,
    HistoricalTrendDataPoint,
    HistoricalTrendsResponse,
    PlatformTrend,
    RealtimeTrendsMetadata,
    RealtimeTrendsResponse,
    RecordTrendRequest,
    SentimentDistribution,
    Trend,
    TrendAnalysisResponse,
)
from repository.analytics_repository import AnalyticsRepository
from services.events import EventPublisher
from services.trends import TrendService
from utils.time_utils import ensure_utc, utcnow

router = APIRouter()

DEFAULT_HISTORY_DAYS = 7


@router.get("/trends/realtime", response_model=RealtimeTrendsResponse)
async def get_realtime_trends(
    request: Request,
    time_window: str = Query(default="1h", alias="timeWindow"),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Ranked trends for the window, merged across platforms."""
    window = parse_time_window(time_window)
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Getting realtime trends for {window.label}")

    now = utcnow()
    snapshot = await AnalyticsRepository(db).get_realtime_trends(window, now, limit=limit)

    # Convert to response format
    trends = []
    for item in snapshot["trends"]:
        trends.append(
            Trend(
                keyword=item["keyword"],
                trend_score=item["trend_score"],
                mention_count=item["mention_count"],
                avg_sentiment_score=item["avg_sentiment_score"],
                platforms=[PlatformTrend(**p) for p in item["platforms"]],
                related_keywords=item["related_keywords"],
                sentiment_distribution=SentimentDistribution(**item["sentiment_distribution"]),
            )
        )

    return RealtimeTrendsResponse(
        time_window=window.label,
        generated_at=now,
        trends=trends,
        metadata=RealtimeTrendsMetadata(
            total_posts_analyzed=snapshot["total_posts_analyzed"],
            platforms=snapshot["platforms"],
            next_update=snapshot["next_update"],
        ),
    )


@router.get("/trends/keyword/{keyword}/history", response_model=HistoricalTrendsResponse)
async def get_keyword_history(
    request: Request,
    keyword: str,
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    granularity: Granularity = Query(default="day"),
    db: AsyncSession = Depends(get_db),
):
    """Historical series for one keyword; defaults to the last 7 days."""
    end = ensure_utc(end_date) if end_date else utcnow()
    start = ensure_utc(start_date) if start_date else end - timedelta(days=DEFAULT_HISTORY_DAYS)

    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Getting history of '{keyword}' from {start} to {end} by {granularity}")

    points = await AnalyticsRepository(db).get_keyword_history(keyword, start, end, granularity)
    return HistoricalTrendsResponse(
        keyword=keyword,
        date_range=DateRange(start=start, end=end),
        granularity=granularity,
        data_points=[HistoricalTrendDataPoint(**point) for point in points],
    )


@router.post("/trends", response_model=TrendAnalysisResponse, status_code=status.HTTP_201_CREATED)
async def record_trend(
    request: Request,
    body: RecordTrendRequest,
    db: AsyncSession = Depends(get_db),
    events: EventPublisher = Depends(get_event_publisher),
):
    """Append an aggregation row from the external trend job and announce it."""
    window = parse_time_window(body.window_type, field="windowType")
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Recording trend '{body.keyword}' on {body.platform} ({window.label})")

    trend = await TrendService(db, events=events).record(
        keyword=body.keyword,
        platform=body.platform,
        window_type=window,
        time_window_start=body.time_window_start,
        time_window_end=body.time_window_end,
        trend_score=body.trend_score,
        mention_count=body.mention_count,
        avg_sentiment_score=body.avg_sentiment_score,
        related_keywords=body.related_keywords,
        geographic_data=body.geographic_data,
    )
    return TrendAnalysisResponse(
        id=trend.id,
        keyword=trend.keyword,
        platform=trend.platform,
        window_type=window.label,
        time_window_start=ensure_utc(trend.time_window_start),
        time_window_end=ensure_utc(trend.time_window_end),
        trend_score=float(trend.trend_score),
        mention_count=trend.mention_count,
        avg_sentiment_score=float(trend.avg_sentiment_score),
        related_keywords=trend.related_keywords or [],
        created_at=ensure_utc(trend.created_at),
    )
