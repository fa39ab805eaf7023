"""Event channel: envelope building, cross-process fan-out and WebSocket relay.

Events are published to a Redis channel so that worker processes can notify
API processes. Each API process relays what it receives to the WebSocket
clients subscribed to the event's channel. Delivery is at-least-once and
consumers deduplicate on the envelope ``id``.
"""

import asyncio
import uuid
from typing import Dict, Optional, Set

from fastapi import WebSocket

from core.constants import (
    CHANNEL_ALERTS,
    CHANNEL_ANALYTICS,
    CHANNEL_TRENDS,
    EVENT_ALERT,
    EVENT_ANALYTICS_UPDATE,
    EVENT_CHANNELS,
    EVENT_TREND_UPDATE,
)
from core.logger import logger
from models.schemas.events import AlertData, AnalyticsUpdateData, EventEnvelope, TrendUpdateData
from pkg.redis.pubsub import IPubSub, RedisPubSubError
from utils.time_utils import utcnow


def build_envelope(
    event_type: str,
    channel: str,
    data: dict,
    severity: Optional[str] = None,
    message: Optional[str] = None,
) -> dict:
    envelope = EventEnvelope(
        id=str(uuid.uuid4()),
        type=event_type,
        channel=channel,
        timestamp=utcnow(),
        severity=severity,
        message=message,
        data=data,
    )
    return envelope.model_dump(mode="json", by_alias=True, exclude_none=True)


class ConnectionManager:
    """WebSocket clients and the channels each one subscribed to."""

    def __init__(self):
        self.subscriptions: Dict[WebSocket, Set[str]] = {}

    @property
    def active_connections(self) -> int:
        return len(self.subscriptions)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.subscriptions[websocket] = set()
        logger.info(f"Client {websocket.client} connected. Total connections: {self.active_connections}")

    def disconnect(self, websocket: WebSocket):
        if self.subscriptions.pop(websocket, None) is not None:
            logger.info(f"Client {websocket.client} disconnected. Total connections: {self.active_connections}")

    def subscribe(self, websocket: WebSocket, channels) -> Set[str]:
        wanted = {ch for ch in channels if ch in EVENT_CHANNELS}
        self.subscriptions.setdefault(websocket, set()).update(wanted)
        return self.subscriptions[websocket]

    def unsubscribe(self, websocket: WebSocket, channels) -> Set[str]:
        current = self.subscriptions.setdefault(websocket, set())
        current.difference_update(channels)
        return current

    async def broadcast(self, envelope: dict) -> int:
        """Send to every client subscribed to the envelope's channel."""
        channel = envelope.get("channel")
        delivered = 0
        disconnected = []
        for websocket, channels in list(self.subscriptions.items()):
            if channel not in channels:
                continue
            try:
                await websocket.send_json(envelope)
                delivered += 1
            except Exception as e:
                logger.warning(f"Error sending to client {websocket.client}: {e}")
                disconnected.append(websocket)

        for websocket in disconnected:
            self.disconnect(websocket)
        return delivered


class EventPublisher:
    """Publishes typed events to Redis, or straight to local clients when
    no transport is configured."""

    def __init__(
        self,
        transport: Optional[IPubSub] = None,
        redis_channel: str = "sentiment.events",
        local: Optional[ConnectionManager] = None,
    ):
        self.transport = transport
        self.redis_channel = redis_channel
        self.local = local

    async def publish(
        self,
        event_type: str,
        channel: str,
        data: dict,
        severity: Optional[str] = None,
        message: Optional[str] = None,
    ) -> dict:
        envelope = build_envelope(event_type, channel, data, severity=severity, message=message)

        if self.transport is not None:
            try:
                await self.transport.publish(self.redis_channel, envelope)
            except RedisPubSubError as e:
                logger.error(f"Dropped {event_type} event {envelope['id']}: {e}")
        elif self.local is not None:
            await self.local.broadcast(envelope)

        logger.debug(f"Published {event_type} event {envelope['id']} on {channel}")
        return envelope

    async def publish_trend_update(
        self, keyword: str, new_mentions: int, sentiment_change: float, trend_score: float
    ) -> dict:
        data = TrendUpdateData(
            keyword=keyword,
            new_mentions=new_mentions,
            sentiment_change=sentiment_change,
            trend_score=trend_score,
        )
        return await self.publish(EVENT_TREND_UPDATE, CHANNEL_TRENDS, data.model_dump(by_alias=True))

    async def publish_analytics_update(
        self, posts_processed_last_minute: int, avg_response_time: float, current_throughput: float
    ) -> dict:
        data = AnalyticsUpdateData(
            posts_processed_last_minute=posts_processed_last_minute,
            avg_response_time=avg_response_time,
            current_throughput=current_throughput,
        )
        return await self.publish(EVENT_ANALYTICS_UPDATE, CHANNEL_ANALYTICS, data.model_dump(by_alias=True))

    async def publish_alert(self, queue_size: int, threshold: int) -> dict:
        severity = "error" if queue_size >= 2 * threshold else "warning"
        data = AlertData(queue_size=queue_size, threshold=threshold)
        return await self.publish(
            EVENT_ALERT,
            CHANNEL_ALERTS,
            data.model_dump(by_alias=True),
            severity=severity,
            message=f"Processing queue size {queue_size} reached threshold {threshold}",
        )


async def relay_events(transport: IPubSub, redis_channel: str, manager: ConnectionManager):
    """Forward every Redis event to local WebSocket subscribers until cancelled."""
    logger.info(f"Starting event relay from Redis channel '{redis_channel}'")
    while True:
        try:
            async for envelope in transport.listen(redis_channel):
                await manager.broadcast(envelope)
        except asyncio.CancelledError:
            logger.info("Event relay stopped")
            raise
        except Exception as e:
            logger.error(f"Event relay error, resubscribing in 5s: {e}")
            await asyncio.sleep(5)
