"""Dashboard and report API routes."""

import csv
import io
from datetime import datetime, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.logger import logger
from core.metrics import RequestMetrics
from internal.api.dependencies import get_metrics
from internal.api.params import parse_range
from models.schemas.analytics import (
    DashboardResponse,
    DashboardSummary,
    PerformanceMetrics,
    PlatformBreakdown,
    ReportFormat,
    ReportGroupBy,
    SentimentSummaryReport,
    SentimentSummaryRow,
    TopTrend,
)
from models.schemas.trends import SentimentDistribution
from repository.analytics_repository import AnalyticsRepository
from utils.time_utils import ensure_utc, format_duration, utcnow

router = APIRouter()

CSV_COLUMNS = ["group", "totalPosts", "avgSentiment", "avgConfidence", "positive", "neutral", "negative"]


def render_summary_csv(rows: List[SentimentSummaryRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_COLUMNS)
    for row in rows:
        writer.writerow(
            [
                row.group,
                row.total_posts,
                f"{row.avg_sentiment:.4f}",
                f"{row.avg_confidence:.4f}",
                row.positive,
                row.neutral,
                row.negative,
            ]
        )
    return buffer.getvalue()


@router.get("/analytics/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    request: Request,
    time_range: str = Query(default="24h", alias="timeRange"),
    db: AsyncSession = Depends(get_db),
    metrics: RequestMetrics = Depends(get_metrics),
):
    """Dashboard summary over the trailing time range (e.g. 1h, 24h, 7d)."""
    span = parse_range(time_range)
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Getting dashboard for last {time_range}")

    now = utcnow()
    data = await AnalyticsRepository(db).get_dashboard(now - span, now)

    return DashboardResponse(
        time_range=time_range,
        generated_at=now,
        summary=DashboardSummary(
            total_posts_processed=data["total_posts_processed"],
            avg_processing_time=format_duration(data["avg_processing_time"]),
            system_uptime=metrics.uptime_seconds,
            api_requests_today=metrics.requests_today,
        ),
        sentiment_distribution=SentimentDistribution(**data["sentiment_distribution"]),
        platform_breakdown=[PlatformBreakdown(**p) for p in data["platform_breakdown"]],
        top_trends=[TopTrend(**t) for t in data["top_trends"]],
        performance_metrics=PerformanceMetrics(
            avg_response_time=metrics.avg_response_time_ms,
            error_rate=data["error_rate"],
            throughput=data["throughput"],
        ),
    )


@router.get("/analytics/reports/sentiment-summary", response_model=SentimentSummaryReport)
async def get_sentiment_summary(
    request: Request,
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    group_by: ReportGroupBy = Query(default="day", alias="groupBy"),
    report_format: ReportFormat = Query(default="json", alias="format"),
    db: AsyncSession = Depends(get_db),
):
    """Sentiment summary grouped by time bucket or platform, as JSON or CSV."""
    end = ensure_utc(end_date) if end_date else utcnow()
    start = ensure_utc(start_date) if start_date else end - timedelta(days=7)

    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        f"Request {request_id}: Sentiment summary from {start} to {end} by {group_by} ({report_format})"
    )

    raw_rows = await AnalyticsRepository(db).get_sentiment_summary(start, end, group_by)
    rows = [SentimentSummaryRow(**row) for row in raw_rows]

    if report_format == "csv":
        filename = f"sentiment-summary-{start:%Y%m%d}-{end:%Y%m%d}.csv"
        return Response(
            content=render_summary_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    return SentimentSummaryReport(
        start_date=start,
        end_date=end,
        group_by=group_by,
        generated_at=utcnow(),
        rows=rows,
        total_posts=sum(row.total_posts for row in rows),
    )
