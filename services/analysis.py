"""Synchronous analyze flow: store a post, score it, record the result."""

import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable, List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import format_exception_short, logger
from models.database import SentimentAnalysis, SocialMediaPost
from models.enums import TimeWindow
from models.schemas.sentiment import AnalyzeSentimentRequest
from repository.post_repository import PostRepository
from repository.sentiment_repository import SentimentRepository
from repository.trend_repository import TrendRepository
from services.queue.service import QueueService
from services.scorer import ISentimentScorer, ScoreResult, keyword_weights
from utils.time_utils import utcnow


@dataclass
class AnalysisOutcome:
    post: SocialMediaPost
    analysis: SentimentAnalysis
    trends: List[Tuple[str, float]] = field(default_factory=list)


class SentimentAnalysisService:
    """Runs one post through enqueue, claim, score, save and complete."""

    def __init__(self, db: AsyncSession, scorer: ISentimentScorer, events=None):
        self.db = db
        self.scorer = scorer
        self.posts = PostRepository(db)
        self.analyses = SentimentRepository(db)
        self.trends = TrendRepository(db)
        self.queue = QueueService(db, events=events)

    async def analyze(self, request: AnalyzeSentimentRequest) -> AnalysisOutcome:
        post = await self.posts.create(
            content=request.content,
            platform=request.platform,
            user_id=request.user_id,
            user_name=request.user_name,
            source_url=request.source_url,
            source_id=request.source_id,
            timestamp=request.timestamp,
            language=request.language,
            raw_metadata=request.metadata,
        )
        entry = await self.queue.enqueue(post.id)
        await self.queue.claim(entry.id)
        return await self.process_claimed(post, entry.id)

    async def process_claimed(self, post: SocialMediaPost, queue_id) -> AnalysisOutcome:
        """Score a post whose queue row is Processing and complete or fail the row."""
        post_id = post.id
        started = time.perf_counter()
        analysis = None
        try:
            result = await self.scorer.score(post.content, post.language)
            elapsed = timedelta(seconds=time.perf_counter() - started)
            analysis = await self._save(post, result, elapsed)
            links = await self._link_trends(post, result.keywords)
        except Exception as e:
            logger.error(f"Analysis of post {post_id} failed: {format_exception_short(e)}")
            await self.db.rollback()
            if analysis is not None:
                await self.analyses.delete_for_post(post_id)
            await self.queue.mark_failed(queue_id, str(e))
            raise

        await self.queue.mark_completed(queue_id)
        logger.info(
            f"Analyzed post {post.id}: {analysis.overall_sentiment.label} "
            f"(confidence {analysis.confidence_score}, {len(links)} trend links)"
        )
        return AnalysisOutcome(post=post, analysis=analysis, trends=links)

    async def _save(self, post: SocialMediaPost, result: ScoreResult, elapsed: timedelta) -> SentimentAnalysis:
        return await self.analyses.save(
            post.id,
            positive_score=result.positive_score,
            negative_score=result.negative_score,
            neutral_score=result.neutral_score,
            overall_sentiment=result.overall_sentiment,
            confidence_score=result.confidence_score,
            is_sarcastic=result.is_sarcastic,
            sarcasm_score=result.sarcasm_score,
            model_version=result.model_version,
            analyzed_at=utcnow(),
            processing_time=elapsed,
            extracted_keywords=result.keywords,
            extracted_entities=result.entities,
            detailed_scores=result.detailed_scores,
        )

    async def _link_trends(self, post: SocialMediaPost, keywords: Iterable[Any]) -> List[Tuple[str, float]]:
        """Link the post to the current 5-minute trend rows of its keywords."""
        weights = keyword_weights(keywords)
        if not weights:
            return []

        current = await self.trends.find_current(
            weights.keys(), TimeWindow.FIVE_MINUTES, utcnow(), platform=post.platform
        )
        links = []
        for trend in current:
            relevance = weights[trend.keyword.strip().lower()]
            link = await self.trends.link_keyword(post.id, trend.id, trend.keyword, relevance)
            links.append((trend.keyword, float(link.relevance_score)))
        return links
