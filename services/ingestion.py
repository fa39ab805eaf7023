"""Ingestion trigger and status."""

import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import INGESTION_PRIORITIES
from core.errors import UpstreamError, ValidationError
from core.logger import logger
from models.enums import PostStatus
from models.schemas.ingestion import TriggerIngestionRequest
from pkg.rabbitmq import IMessagePublisher, IngestionRequest, RabbitMQPublisherError
from repository.analytics_repository import AnalyticsRepository
from services.queue.service import QueueService
from utils.time_utils import utcnow

ACTIVE_INGESTION_WINDOW = timedelta(minutes=5)


async def trigger_ingestion(
    publisher: Optional[IMessagePublisher], platform: str, request: TriggerIngestionRequest
) -> IngestionRequest:
    """Publish an ingestion request for the platform's collector."""
    platform = (platform or "").strip().lower()
    if not platform:
        raise ValidationError("platform", "must not be empty", "REQUIRED")
    if publisher is None:
        raise UpstreamError("Ingestion broker is not connected")

    message = IngestionRequest(
        request_id=str(uuid.uuid4()),
        platform=platform,
        sources=list(request.subreddits) + list(request.sources),
        min_upvotes=request.filters.min_upvotes,
        max_age=request.filters.max_age,
        exclude_stickied=request.filters.exclude_stickied,
        priority=request.priority,
        queue_priority=INGESTION_PRIORITIES[request.priority],
        requested_at=utcnow().isoformat(),
    )
    try:
        await publisher.publish_ingestion_request(message)
    except RabbitMQPublisherError as e:
        logger.error(f"Ingestion trigger for {platform} failed: {e}")
        raise UpstreamError(f"Failed to queue ingestion request: {e}") from e
    return message


def platform_status(stats: Dict[str, Any], now) -> str:
    """running if something arrived in the last 5 minutes, error if the
    latest post failed, idle otherwise."""
    last = stats.get("last_ingestion")
    if last is not None and now - last <= ACTIVE_INGESTION_WINDOW:
        return "running"
    if stats.get("latest_status") == PostStatus.FAILED:
        return "error"
    return "idle"


async def get_ingestion_status(db: AsyncSession) -> Dict[str, Any]:
    now = utcnow()
    platforms = []
    for stats in await AnalyticsRepository(db).get_platform_ingestion_stats():
        platforms.append(
            {
                "platform": stats["platform"],
                "status": platform_status(stats, now),
                "last_ingestion": stats["last_ingestion"],
                "posts_ingested": stats["posts_ingested"],
                "errors": stats["errors"],
            }
        )

    queue = await QueueService(db).queue_stats()
    return {
        "platforms": platforms,
        "pending_analysis": queue[PostStatus.PENDING.label],
        "processing": queue[PostStatus.PROCESSING.label],
        "avg_processing_time": queue["avg_processing_time"],
    }
