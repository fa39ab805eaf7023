from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Dict, Optional, Union

from aio_pika import DeliveryMode, ExchangeType, Message
from aio_pika.abc import AbstractExchange, AbstractRobustChannel
from loguru import logger

from .constant import *
from .interface import IMessagePublisher
from .type import IngestionRequest, PublisherConfig


class RabbitMQPublisherError(Exception):
    """Raised when the ingestion exchange cannot be declared or written to."""

    pass


def amqp_priority(queue_priority: int) -> int:
    """Map a processing-queue priority (0 most urgent) onto AMQP 0..9 (9 most urgent)."""
    return max(0, MAX_AMQP_PRIORITY - max(0, int(queue_priority)))


class RabbitMQPublisher(IMessagePublisher):
    """Sends ingestion requests to platform collectors.

    Requests travel through a topic exchange on ``<routing_key>.<platform>``;
    each collector binds only to its own platform key. Messages are persistent
    and carry the platform and queue priority as headers so collectors can
    filter without decoding the body.
    """

    def __init__(self, channel: AbstractRobustChannel, config: PublisherConfig):
        self.channel = channel
        self.config = config
        self.exchange: Optional[AbstractExchange] = None
        self._is_setup = False

        logger.info(
            f"Ingestion publisher created for exchange '{config.exchange_name}' (routing prefix '{config.routing_key}')"
        )

    async def setup(self) -> None:
        """Declare the topic exchange; repeated calls are no-ops.

        Raises:
            RabbitMQPublisherError: If the broker rejects the declaration.
        """
        if self._is_setup:
            return

        try:
            self.exchange = await self.channel.declare_exchange(
                self.config.exchange_name,
                ExchangeType.TOPIC,
                durable=self.config.durable,
            )
        except Exception as exc:
            logger.error(f"Could not declare ingestion exchange '{self.config.exchange_name}': {exc}")
            raise RabbitMQPublisherError(f"Failed to setup publisher: {exc}") from exc

        self._is_setup = True
        logger.info(f"Ingestion exchange '{self.config.exchange_name}' ready (durable={self.config.durable})")

    def _build_message(self, message: dict, headers: Optional[Dict[str, object]] = None) -> Message:
        body = json.dumps(message, ensure_ascii=False).encode("utf-8")
        kwargs = {}
        if "queue_priority" in message:
            kwargs["priority"] = amqp_priority(message["queue_priority"])
        return Message(
            body,
            delivery_mode=DeliveryMode.PERSISTENT,
            content_type="application/json",
            message_id=message.get("request_id"),
            timestamp=datetime.now(timezone.utc),
            headers=headers or {},
            **kwargs,
        )

    async def publish(
        self,
        message: dict,
        routing_key: Optional[str] = None,
        headers: Optional[Dict[str, object]] = None,
    ) -> None:
        """Publish a JSON message.

        Raises:
            RabbitMQPublisherError: If setup() has not run or the publish fails.
        """
        if not self._is_setup or self.exchange is None:
            raise RabbitMQPublisherError(ERROR_PUBLISHER_NOT_SETUP)

        key = routing_key or self.config.routing_key
        amqp_message = self._build_message(message, headers)
        try:
            await self.exchange.publish(amqp_message, routing_key=key)
        except Exception as exc:
            logger.error(f"Publish to '{self.config.exchange_name}' with key '{key}' failed: {exc}")
            raise RabbitMQPublisherError(f"Failed to publish message: {exc}") from exc

        logger.debug(f"Published {len(amqp_message.body)} bytes to '{self.config.exchange_name}' with key '{key}'")

    async def publish_ingestion_request(self, request: Union[IngestionRequest, dict]) -> str:
        """Route an ingestion request to its platform collector.

        Returns:
            The routing key the request was published with.

        Raises:
            RabbitMQPublisherError: If platform is empty or publishing fails.
        """
        message = request.to_dict() if isinstance(request, IngestionRequest) else dict(request)
        platform = (message.get("platform") or "").strip().lower()
        if not platform:
            raise RabbitMQPublisherError(ERROR_PLATFORM_REQUIRED)

        routing_key = f"{self.config.routing_key}.{platform}"
        headers = {"platform": platform}
        if message.get("queue_priority") is not None:
            headers["queue_priority"] = int(message["queue_priority"])
        await self.publish(message, routing_key, headers=headers)

        logger.info(
            f"Ingestion request {message.get('request_id')} queued for {platform} "
            f"({len(message.get('sources') or [])} sources, priority {message.get('priority')})"
        )
        return routing_key

    def is_ready(self) -> bool:
        return self._is_setup and self.exchange is not None
