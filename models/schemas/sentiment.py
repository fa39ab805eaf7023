"""Sentiment analysis API schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from core import constants as c
from models.enums import SentimentType
from models.schemas.base import CamelModel
from utils.time_utils import ensure_utc, format_duration


class AnalyzeSentimentRequest(CamelModel):
    """Post to store and analyze."""

    content: str = Field(min_length=1, max_length=c.MAX_CONTENT_LENGTH)
    platform: str = Field(min_length=1, max_length=c.MAX_PLATFORM_LENGTH)
    user_id: str = Field(min_length=1, max_length=c.MAX_USER_ID_LENGTH)
    user_name: str = Field(min_length=1, max_length=c.MAX_USER_NAME_LENGTH)
    source_url: Optional[str] = Field(default=None, max_length=c.MAX_SOURCE_URL_LENGTH)
    source_id: Optional[str] = Field(default=None, max_length=c.MAX_SOURCE_ID_LENGTH)
    timestamp: Optional[datetime] = Field(default=None, description="Posted-at time on the platform")
    language: str = Field(default=c.DEFAULT_LANGUAGE, min_length=1, max_length=c.MAX_LANGUAGE_LENGTH)
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="Platform-specific metadata")


class SentimentAnalysisResult(CamelModel):
    """Stored sentiment analysis for one post."""

    id: UUID
    post_id: UUID
    overall_sentiment: str = Field(description="very_negative .. very_positive")
    positive_score: float
    negative_score: float
    neutral_score: float
    confidence_score: float
    is_sarcastic: bool
    sarcasm_score: float
    model_version: str
    analyzed_at: datetime
    processing_time: str = Field(description="Duration formatted as HH:MM:SS.fff")
    extracted_keywords: List[Any] = Field(default_factory=list)
    extracted_entities: List[Any] = Field(default_factory=list)
    detailed_scores: Optional[Dict[str, Any]] = None


class TrendRelevance(CamelModel):
    keyword: str
    relevance_score: float


class AnalyzeSentimentResponse(CamelModel):
    post_id: UUID
    sentiment_analysis: SentimentAnalysisResult
    trends: List[TrendRelevance] = Field(default_factory=list)


class RecentAnalysisItem(CamelModel):
    """Recent analysis joined with its post."""

    post_id: UUID
    platform: str
    author: str
    content: str
    timestamp: datetime
    sentiment_analysis: SentimentAnalysisResult


class SentimentTrendPoint(CamelModel):
    bucket_start: datetime
    avg_sentiment: float
    post_count: int
    positive: int
    neutral: int
    negative: int


class SentimentTrendsResponse(CamelModel):
    """Sentiment series for a time window."""

    time_window: str
    generated_at: datetime
    bucket_minutes: int
    data_points: List[SentimentTrendPoint] = Field(default_factory=list)


def to_analysis_result(analysis) -> SentimentAnalysisResult:
    """Build the API shape from a SentimentAnalysis row."""
    return SentimentAnalysisResult(
        id=analysis.id,
        post_id=analysis.post_id,
        overall_sentiment=SentimentType(analysis.overall_sentiment).label,
        positive_score=float(analysis.positive_score),
        negative_score=float(analysis.negative_score),
        neutral_score=float(analysis.neutral_score),
        confidence_score=float(analysis.confidence_score),
        is_sarcastic=bool(analysis.is_sarcastic),
        sarcasm_score=float(analysis.sarcasm_score or 0),
        model_version=analysis.model_version,
        analyzed_at=ensure_utc(analysis.analyzed_at),
        processing_time=format_duration(analysis.processing_time),
        extracted_keywords=analysis.extracted_keywords or [],
        extracted_entities=analysis.extracted_entities or [],
        detailed_scores=analysis.detailed_scores,
    )
