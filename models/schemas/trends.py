"""Trend API schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import Field

from core import constants as c
from models.schemas.base import CamelModel

Granularity = Literal["hour", "day", "week"]


class PlatformTrend(CamelModel):
    platform: str
    mention_count: int
    avg_sentiment: float


class SentimentDistribution(CamelModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class Trend(CamelModel):
    keyword: str
    trend_score: float
    mention_count: int
    avg_sentiment_score: float
    platforms: List[PlatformTrend] = Field(default_factory=list)
    related_keywords: List[str] = Field(default_factory=list)
    sentiment_distribution: SentimentDistribution = Field(default_factory=SentimentDistribution)


class RealtimeTrendsMetadata(CamelModel):
    total_posts_analyzed: int
    platforms: List[str] = Field(default_factory=list)
    next_update: datetime


class RealtimeTrendsResponse(CamelModel):
    """Ranked trend snapshot for one window."""

    time_window: str
    generated_at: datetime
    trends: List[Trend] = Field(default_factory=list)
    metadata: RealtimeTrendsMetadata


class HistoricalTrendDataPoint(CamelModel):
    date: datetime
    mention_count: int
    avg_sentiment: float
    trend_score: float


class DateRange(CamelModel):
    start: datetime
    end: datetime


class HistoricalTrendsResponse(CamelModel):
    """Bucketed history of one keyword."""

    keyword: str
    date_range: DateRange
    granularity: Granularity
    data_points: List[HistoricalTrendDataPoint] = Field(default_factory=list)


class RecordTrendRequest(CamelModel):
    """Aggregation row produced by the external trend job."""

    keyword: str = Field(min_length=1, max_length=c.MAX_KEYWORD_LENGTH)
    platform: str = Field(min_length=1, max_length=c.MAX_PLATFORM_LENGTH)
    window_type: str = Field(description="5m, 15m, 1h, 6h, 24h or 7d")
    time_window_start: datetime
    time_window_end: Optional[datetime] = None
    trend_score: float = Field(gt=-c.MAX_TREND_SCORE_MAGNITUDE, lt=c.MAX_TREND_SCORE_MAGNITUDE)
    mention_count: int = Field(ge=0)
    avg_sentiment_score: float = Field(ge=-1, le=1)
    related_keywords: List[str] = Field(default_factory=list)
    geographic_data: Optional[Dict[str, Any]] = None


class TrendAnalysisResponse(CamelModel):
    id: UUID
    keyword: str
    platform: str
    window_type: str
    time_window_start: datetime
    time_window_end: datetime
    trend_score: float
    mention_count: int
    avg_sentiment_score: float
    related_keywords: List[str] = Field(default_factory=list)
    created_at: datetime
