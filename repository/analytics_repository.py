"""Async read-side aggregations for trends, the dashboard and reports.

Bucketing by time is done in Python over the filtered rows so the same code
runs on PostgreSQL and SQLite.
"""

from collections import OrderedDict, defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import storage_retry
from core.errors import ValidationError
from core.logger import logger
from models.database import ProcessingQueue, SentimentAnalysis, SocialMediaPost, TrendAnalysis, TrendKeyword
from models.enums import PostStatus, SentimentType, TimeWindow
from utils.time_utils import GRANULARITY_DELTAS, ensure_utc, floor_datetime

# Bucket width (minutes) of the sentiment series for each window
SERIES_BUCKET_MINUTES = {
    TimeWindow.FIVE_MINUTES: 1,
    TimeWindow.FIFTEEN_MINUTES: 1,
    TimeWindow.ONE_HOUR: 5,
    TimeWindow.SIX_HOURS: 30,
    TimeWindow.TWENTY_FOUR_HOURS: 60,
    TimeWindow.SEVEN_DAYS: 720,
}

MAX_RELATED_KEYWORDS = 10

_SIGNED_SCORE = SentimentAnalysis.positive_score - SentimentAnalysis.negative_score


def _empty_distribution() -> Dict[str, int]:
    return {"positive": 0, "neutral": 0, "negative": 0}


def _weighted_average(pairs) -> float:
    """Mention-weighted mean of (value, weight); plain mean when all weights are 0."""
    pairs = list(pairs)
    if not pairs:
        return 0.0
    total_weight = sum(w for _, w in pairs)
    if total_weight:
        return sum(v * w for v, w in pairs) / total_weight
    return sum(v for v, _ in pairs) / len(pairs)


def _check_range(start: datetime, end: datetime) -> None:
    if end < start:
        raise ValidationError("endDate", "must not be before startDate", "OUT_OF_RANGE")


class AnalyticsRepository:
    """Aggregations consumed by the dashboard."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _sentiment_counts(self, trend_ids: List) -> Dict[Any, Dict[str, int]]:
        counts = {trend_id: _empty_distribution() for trend_id in trend_ids}
        if not trend_ids:
            return counts
        query = (
            select(
                TrendKeyword.trend_analysis_id,
                SentimentAnalysis.overall_sentiment,
                func.count(func.distinct(TrendKeyword.post_id)),
            )
            .join(SentimentAnalysis, SentimentAnalysis.post_id == TrendKeyword.post_id)
            .where(TrendKeyword.trend_analysis_id.in_(trend_ids))
            .group_by(TrendKeyword.trend_analysis_id, SentimentAnalysis.overall_sentiment)
        )
        for trend_id, sentiment, count in (await self.db.execute(query)).all():
            counts[trend_id][SentimentType(sentiment).polarity] += count
        return counts

    @storage_retry
    async def get_realtime_trends(self, window: TimeWindow, now: datetime, limit: int = 20) -> Dict[str, Any]:
        """Ranked trends of one window type, merged across platforms.

        Only the latest row of every (keyword, platform) series whose window
        started within the last window length is used.
        """
        window = TimeWindow(window)
        since = now - timedelta(minutes=window.minutes)
        query = (
            select(TrendAnalysis)
            .where(TrendAnalysis.window_type == window, TrendAnalysis.time_window_start >= since)
            .order_by(desc(TrendAnalysis.time_window_start), desc(TrendAnalysis.created_at))
        )
        rows = (await self.db.execute(query)).scalars().all()

        latest: "OrderedDict[tuple, TrendAnalysis]" = OrderedDict()
        for row in rows:
            latest.setdefault((row.keyword.strip().lower(), row.platform), row)

        by_keyword: Dict[str, List[TrendAnalysis]] = defaultdict(list)
        for (keyword, _), row in latest.items():
            by_keyword[keyword].append(row)

        trend_ids = [row.id for row in latest.values()]
        distributions = await self._sentiment_counts(trend_ids)

        trends = []
        for keyword_rows in by_keyword.values():
            distribution = _empty_distribution()
            related: List[str] = []
            for row in keyword_rows:
                for polarity, count in distributions[row.id].items():
                    distribution[polarity] += count
                for related_keyword in row.related_keywords or []:
                    if related_keyword not in related:
                        related.append(related_keyword)

            trends.append(
                {
                    "keyword": max(keyword_rows, key=lambda r: r.trend_score).keyword,
                    "trend_score": float(max(r.trend_score for r in keyword_rows)),
                    "mention_count": sum(r.mention_count for r in keyword_rows),
                    "avg_sentiment_score": round(
                        _weighted_average(
                            (float(r.avg_sentiment_score), r.mention_count) for r in keyword_rows
                        ),
                        4,
                    ),
                    "platforms": [
                        {
                            "platform": r.platform,
                            "mention_count": r.mention_count,
                            "avg_sentiment": float(r.avg_sentiment_score),
                        }
                        for r in sorted(keyword_rows, key=lambda r: r.mention_count, reverse=True)
                    ],
                    "related_keywords": related[:MAX_RELATED_KEYWORDS],
                    "sentiment_distribution": distribution,
                }
            )

        trends.sort(key=lambda t: t["trend_score"], reverse=True)

        total_posts = 0
        if trend_ids:
            count_query = select(func.count(func.distinct(TrendKeyword.post_id))).where(
                TrendKeyword.trend_analysis_id.in_(trend_ids)
            )
            total_posts = (await self.db.execute(count_query)).scalar() or 0

        logger.debug(f"Realtime trends ({window.label}): {len(trends)} keywords from {len(rows)} rows")
        return {
            "trends": trends[:limit],
            "total_posts_analyzed": total_posts,
            "platforms": sorted({row.platform for row in latest.values()}),
            "next_update": now + timedelta(seconds=settings.trend_update_interval_seconds),
        }

    @storage_retry
    async def get_keyword_history(
        self, keyword: str, start: datetime, end: datetime, granularity: str
    ) -> List[Dict[str, Any]]:
        """Per-bucket mentions, weighted sentiment and peak score for one keyword."""
        _check_range(start, end)
        step = GRANULARITY_DELTAS[granularity]
        query = (
            select(TrendAnalysis)
            .where(
                func.lower(TrendAnalysis.keyword) == keyword.strip().lower(),
                TrendAnalysis.time_window_start >= start,
                TrendAnalysis.time_window_start <= end,
            )
            .order_by(TrendAnalysis.time_window_start)
        )
        rows = (await self.db.execute(query)).scalars().all()

        buckets: Dict[datetime, List[TrendAnalysis]] = defaultdict(list)
        for row in rows:
            buckets[floor_datetime(row.time_window_start, step)].append(row)

        return [
            {
                "date": bucket,
                "mention_count": sum(r.mention_count for r in bucket_rows),
                "avg_sentiment": round(
                    _weighted_average((float(r.avg_sentiment_score), r.mention_count) for r in bucket_rows), 4
                ),
                "trend_score": float(max(r.trend_score for r in bucket_rows)),
            }
            for bucket, bucket_rows in sorted(buckets.items())
        ]

    @storage_retry
    async def get_dashboard(self, since: datetime, now: datetime, top_trends: int = 10) -> Dict[str, Any]:
        """Processing, sentiment, platform and trend aggregates over [since, now]."""
        processed_query = select(func.count()).where(
            SocialMediaPost.status == PostStatus.COMPLETED,
            SocialMediaPost.processed_at >= since,
        )
        total_processed = (await self.db.execute(processed_query)).scalar() or 0

        durations = (
            await self.db.execute(
                select(SentimentAnalysis.processing_time).where(SentimentAnalysis.analyzed_at >= since)
            )
        ).scalars().all()
        avg_processing = (
            sum(durations, timedelta(0)) / len(durations) if durations else timedelta(0)
        )

        distribution = _empty_distribution()
        sentiment_query = (
            select(SentimentAnalysis.overall_sentiment, func.count())
            .where(SentimentAnalysis.analyzed_at >= since)
            .group_by(SentimentAnalysis.overall_sentiment)
        )
        for sentiment, count in (await self.db.execute(sentiment_query)).all():
            distribution[SentimentType(sentiment).polarity] += count

        platform_query = (
            select(SocialMediaPost.platform, func.count(), func.avg(_SIGNED_SCORE))
            .join(SentimentAnalysis, SentimentAnalysis.post_id == SocialMediaPost.id)
            .where(SentimentAnalysis.analyzed_at >= since, SocialMediaPost.is_deleted.is_(False))
            .group_by(SocialMediaPost.platform)
            .order_by(desc(func.count()))
        )
        platforms = [
            {"platform": platform, "post_count": count, "avg_sentiment": round(float(avg or 0), 4)}
            for platform, count, avg in (await self.db.execute(platform_query)).all()
        ]

        trends = await self._top_trends(since, now, top_trends)

        queue_query = (
            select(ProcessingQueue.status, func.count())
            .where(
                ProcessingQueue.created_at >= since,
                ProcessingQueue.status.in_((PostStatus.COMPLETED, PostStatus.FAILED)),
            )
            .group_by(ProcessingQueue.status)
        )
        outcomes = {PostStatus(status): count for status, count in (await self.db.execute(queue_query)).all()}
        completed = outcomes.get(PostStatus.COMPLETED, 0)
        failed = outcomes.get(PostStatus.FAILED, 0)
        error_rate = failed / (completed + failed) if completed + failed else 0.0

        minutes = max((now - since).total_seconds() / 60, 1)
        throughput = len(durations) / minutes

        return {
            "total_posts_processed": total_processed,
            "avg_processing_time": avg_processing,
            "sentiment_distribution": distribution,
            "platform_breakdown": platforms,
            "top_trends": trends,
            "error_rate": round(error_rate, 4),
            "throughput": round(throughput, 4),
        }

    async def _top_trends(self, since: datetime, now: datetime, limit: int) -> List[Dict[str, Any]]:
        query = (
            select(TrendAnalysis)
            .where(TrendAnalysis.time_window_start >= since, TrendAnalysis.time_window_start <= now)
            .order_by(desc(TrendAnalysis.trend_score))
            .limit(limit * 5)
        )
        best: "OrderedDict[str, TrendAnalysis]" = OrderedDict()
        for row in (await self.db.execute(query)).scalars().all():
            best.setdefault(row.keyword.strip().lower(), row)

        results = []
        for key, row in list(best.items())[:limit]:
            previous_query = (
                select(TrendAnalysis.trend_score)
                .where(
                    func.lower(TrendAnalysis.keyword) == key,
                    TrendAnalysis.time_window_start <= ensure_utc(row.time_window_start) - timedelta(hours=24),
                )
                .order_by(desc(TrendAnalysis.time_window_start))
                .limit(1)
            )
            previous = (await self.db.execute(previous_query)).scalar()
            score = float(row.trend_score)
            change = (score - float(previous)) / float(previous) if previous else 0.0
            results.append({"keyword": row.keyword, "trend_score": score, "change24h": round(change, 4)})
        return results

    @storage_retry
    async def get_sentiment_summary(self, start: datetime, end: datetime, group_by: str) -> List[Dict[str, Any]]:
        """Analyses in [start, end] grouped by time bucket or platform."""
        _check_range(start, end)
        query = (
            select(
                SocialMediaPost.platform,
                SentimentAnalysis.analyzed_at,
                SentimentAnalysis.overall_sentiment,
                _SIGNED_SCORE,
                SentimentAnalysis.confidence_score,
            )
            .join(SocialMediaPost, SocialMediaPost.id == SentimentAnalysis.post_id)
            .where(
                SentimentAnalysis.analyzed_at >= start,
                SentimentAnalysis.analyzed_at <= end,
                SocialMediaPost.is_deleted.is_(False),
            )
        )

        groups: Dict[str, List] = defaultdict(list)
        for platform, analyzed_at, sentiment, score, confidence in (await self.db.execute(query)).all():
            if group_by == "platform":
                key = platform
            else:
                key = floor_datetime(analyzed_at, GRANULARITY_DELTAS[group_by]).isoformat()
            groups[key].append((SentimentType(sentiment), float(score), float(confidence)))

        rows = []
        for key in sorted(groups):
            items = groups[key]
            distribution = _empty_distribution()
            for sentiment, _, _ in items:
                distribution[sentiment.polarity] += 1
            rows.append(
                {
                    "group": key,
                    "total_posts": len(items),
                    "avg_sentiment": round(sum(s for _, s, _ in items) / len(items), 4),
                    "avg_confidence": round(sum(c for _, _, c in items) / len(items), 4),
                    **distribution,
                }
            )
        return rows

    @storage_retry
    async def get_sentiment_series(self, window: TimeWindow, now: datetime) -> Dict[str, Any]:
        """Average signed sentiment and polarity counts per bucket over the window."""
        window = TimeWindow(window)
        bucket_minutes = SERIES_BUCKET_MINUTES[window]
        step = timedelta(minutes=bucket_minutes)
        since = now - timedelta(minutes=window.minutes)

        query = select(
            SentimentAnalysis.analyzed_at, SentimentAnalysis.overall_sentiment, _SIGNED_SCORE
        ).where(SentimentAnalysis.analyzed_at >= since)

        buckets: Dict[datetime, List] = defaultdict(list)
        for analyzed_at, sentiment, score in (await self.db.execute(query)).all():
            buckets[floor_datetime(analyzed_at, step)].append((SentimentType(sentiment), float(score)))

        points = []
        for bucket in sorted(buckets):
            items = buckets[bucket]
            distribution = _empty_distribution()
            for sentiment, _ in items:
                distribution[sentiment.polarity] += 1
            points.append(
                {
                    "bucket_start": bucket,
                    "avg_sentiment": round(sum(s for _, s in items) / len(items), 4),
                    "post_count": len(items),
                    **distribution,
                }
            )
        return {"bucket_minutes": bucket_minutes, "data_points": points}

    @storage_retry
    async def get_platform_ingestion_stats(self) -> List[Dict[str, Any]]:
        """Per platform: last ingestion time, post count, failed count and latest status."""
        query = (
            select(
                SocialMediaPost.platform,
                func.max(SocialMediaPost.created_at),
                func.count(),
                func.count().filter(SocialMediaPost.status == PostStatus.FAILED),
            )
            .group_by(SocialMediaPost.platform)
            .order_by(SocialMediaPost.platform)
        )
        stats = []
        for platform, last_created, total, failed in (await self.db.execute(query)).all():
            latest_query = (
                select(SocialMediaPost.status)
                .where(SocialMediaPost.platform == platform)
                .order_by(desc(SocialMediaPost.created_at))
                .limit(1)
            )
            latest_status: Optional[PostStatus] = (await self.db.execute(latest_query)).scalar()
            stats.append(
                {
                    "platform": platform,
                    "last_ingestion": ensure_utc(last_created),
                    "posts_ingested": total,
                    "errors": failed,
                    "latest_status": PostStatus(latest_status) if latest_status is not None else None,
                }
            )
        return stats
