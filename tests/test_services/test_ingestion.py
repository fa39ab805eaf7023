"""Tests for the ingestion trigger and status aggregation."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from core.errors import UpstreamError, ValidationError
from models.enums import PostStatus
from models.schemas.ingestion import TriggerIngestionRequest
from pkg.rabbitmq import RabbitMQPublisherError
from services.ingestion import get_ingestion_status, platform_status, trigger_ingestion
from services.queue.service import QueueService
from utils.time_utils import utcnow


class TestTriggerIngestion:
    @pytest.mark.asyncio
    async def test_publishes_request(self):
        publisher = AsyncMock()
        request = TriggerIngestionRequest(
            subreddits=["python"],
            sources=["hn"],
            filters={"minUpvotes": 10, "maxAge": "24h"},
            priority="high",
        )

        message = await trigger_ingestion(publisher, " Reddit ", request)

        publisher.publish_ingestion_request.assert_awaited_once_with(message)
        assert message.platform == "reddit"
        assert message.sources == ["python", "hn"]
        assert message.min_upvotes == 10
        assert message.max_age == "24h"
        assert message.queue_priority == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("priority,queue_priority", [("low", 9), ("normal", 5)])
    async def test_priority_mapping(self, priority, queue_priority):
        message = await trigger_ingestion(AsyncMock(), "twitter", TriggerIngestionRequest(priority=priority))
        assert message.queue_priority == queue_priority

    @pytest.mark.asyncio
    async def test_requires_platform(self):
        with pytest.raises(ValidationError):
            await trigger_ingestion(AsyncMock(), "  ", TriggerIngestionRequest())

    @pytest.mark.asyncio
    async def test_no_broker(self):
        with pytest.raises(UpstreamError, match="not connected"):
            await trigger_ingestion(None, "reddit", TriggerIngestionRequest())

    @pytest.mark.asyncio
    async def test_publish_failure(self):
        publisher = AsyncMock()
        publisher.publish_ingestion_request.side_effect = RabbitMQPublisherError("channel closed")
        with pytest.raises(UpstreamError, match="channel closed"):
            await trigger_ingestion(publisher, "reddit", TriggerIngestionRequest())


class TestPlatformStatus:
    def test_running_when_recent(self):
        now = utcnow()
        assert platform_status({"last_ingestion": now - timedelta(minutes=2)}, now) == "running"

    def test_error_when_latest_failed(self):
        now = utcnow()
        stats = {"last_ingestion": now - timedelta(hours=1), "latest_status": PostStatus.FAILED}
        assert platform_status(stats, now) == "error"

    def test_idle(self):
        now = utcnow()
        stats = {"last_ingestion": now - timedelta(hours=1), "latest_status": PostStatus.COMPLETED}
        assert platform_status(stats, now) == "idle"
        assert platform_status({}, now) == "idle"


class TestIngestionStatus:
    @pytest.mark.asyncio
    async def test_aggregates_platforms_and_queue(self, db, post_factory):
        queue = QueueService(db)
        await queue.enqueue((await post_factory(platform="reddit")).id)
        await queue.enqueue((await post_factory(platform="twitter")).id)
        await queue.claim_next()

        status = await get_ingestion_status(db)

        assert [p["platform"] for p in status["platforms"]] == ["reddit", "twitter"]
        assert all(p["status"] == "running" for p in status["platforms"])
        assert status["pending_analysis"] == 1
        assert status["processing"] == 1
        assert status["avg_processing_time"] == timedelta(0)
