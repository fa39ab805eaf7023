"""Sentiment analysis API routes."""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.constants import MAX_RECENT_RESULTS
from core.database import get_db
from core.errors import NotFound
from core.logger import logger
from internal.api.dependencies import get_event_publisher, get_scorer
from internal.api.params import parse_time_window
from models.schemas.sentiment import (
    AnalyzeSentimentRequest,
    AnalyzeSentimentResponse,
    RecentAnalysisItem,
    SentimentAnalysisResult,
    SentimentTrendPoint,
    SentimentTrendsResponse,
    TrendRelevance,
    to_analysis_result,
)
from repository.analytics_repository import AnalyticsRepository
from repository.sentiment_repository import SentimentRepository
from services.analysis import SentimentAnalysisService
from services.events import EventPublisher
from services.scorer import ISentimentScorer
from utils.time_utils import ensure_utc, utcnow

router = APIRouter()


@router.post("/sentiment/analyze", response_model=AnalyzeSentimentResponse)
async def analyze_sentiment(
    request: Request,
    body: AnalyzeSentimentRequest,
    db: AsyncSession = Depends(get_db),
    scorer: ISentimentScorer = Depends(get_scorer),
    events: EventPublisher = Depends(get_event_publisher),
):
    """Store a post, score it and return the analysis with related trend keywords."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Analyzing {body.platform} post from {body.user_id}")

    outcome = await SentimentAnalysisService(db, scorer, events=events).analyze(body)

    return AnalyzeSentimentResponse(
        post_id=outcome.post.id,
        sentiment_analysis=to_analysis_result(outcome.analysis),
        trends=[TrendRelevance(keyword=k, relevance_score=r) for k, r in outcome.trends],
    )


@router.get("/sentiment/recent", response_model=List[RecentAnalysisItem])
async def get_recent_analyses(
    request: Request,
    limit: int = Query(default=settings.recent_results_default_limit, ge=1, le=MAX_RECENT_RESULTS),
    db: AsyncSession = Depends(get_db),
):
    """Most recent analysis results, newest first."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Getting {limit} recent analyses")

    rows = await SentimentRepository(db).get_recent(limit)
    return [
        RecentAnalysisItem(
            post_id=post.id,
            platform=post.platform,
            author=post.user_name,
            content=post.content,
            timestamp=ensure_utc(post.timestamp),
            sentiment_analysis=to_analysis_result(analysis),
        )
        for analysis, post in rows
    ]


@router.get("/sentiment/trends", response_model=SentimentTrendsResponse)
async def get_sentiment_trends(
    request: Request,
    time_window: str = Query(default="1h", alias="timeWindow"),
    db: AsyncSession = Depends(get_db),
):
    """Bucketed sentiment series over the requested window."""
    window = parse_time_window(time_window)
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Getting sentiment series for {window.label}")

    now = utcnow()
    series = await AnalyticsRepository(db).get_sentiment_series(window, now)
    return SentimentTrendsResponse(
        time_window=window.label,
        generated_at=now,
        bucket_minutes=series["bucket_minutes"],
        data_points=[SentimentTrendPoint(**point) for point in series["data_points"]],
    )


@router.get("/sentiment/{post_id}", response_model=SentimentAnalysisResult)
async def get_post_sentiment(post_id: UUID, db: AsyncSession = Depends(get_db)):
    analysis = await SentimentRepository(db).get_by_post_id(post_id)
    if analysis is None:
        raise NotFound("SentimentAnalysis", post_id)
    return to_analysis_result(analysis)
