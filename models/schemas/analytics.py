"""Dashboard and report schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from models.schemas.base import CamelModel
from models.schemas.trends import SentimentDistribution

ReportGroupBy = Literal["hour", "day", "week", "platform"]
ReportFormat = Literal["json", "csv"]


class DashboardSummary(CamelModel):
    total_posts_processed: int
    avg_processing_time: str = Field(description="Duration formatted as HH:MM:SS.fff")
    system_uptime: float = Field(description="Seconds since the API process started")
    api_requests_today: int


class PlatformBreakdown(CamelModel):
    platform: str
    post_count: int
    avg_sentiment: float


class TopTrend(CamelModel):
    keyword: str
    trend_score: float
    change24h: float = Field(description="Relative trend score change against 24h earlier")


class PerformanceMetrics(CamelModel):
    avg_response_time: float = Field(description="Milliseconds")
    error_rate: float = Field(description="Failed / (completed + failed) queue rows")
    throughput: float = Field(description="Completed analyses per minute")


class DashboardResponse(CamelModel):
    time_range: str
    generated_at: datetime
    summary: DashboardSummary
    sentiment_distribution: SentimentDistribution
    platform_breakdown: List[PlatformBreakdown] = Field(default_factory=list)
    top_trends: List[TopTrend] = Field(default_factory=list)
    performance_metrics: PerformanceMetrics


class SentimentSummaryRow(CamelModel):
    group: str
    total_posts: int
    avg_sentiment: float
    avg_confidence: float
    positive: int
    neutral: int
    negative: int


class SentimentSummaryReport(CamelModel):
    start_date: datetime
    end_date: datetime
    group_by: ReportGroupBy
    generated_at: datetime
    rows: List[SentimentSummaryRow] = Field(default_factory=list)
    total_posts: Optional[int] = None
