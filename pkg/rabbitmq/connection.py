from __future__ import annotations

from typing import Optional

import aio_pika
from aio_pika.abc import AbstractRobustChannel, AbstractRobustConnection
from loguru import logger

from .constant import *
from .type import RabbitMQConfig


class RabbitMQConnection:
    """Robust RabbitMQ connection owning a single publishing channel.

    Attributes:
        config: RabbitMQ configuration
        connection: Active RabbitMQ connection
        channel: Active RabbitMQ channel
    """

    def __init__(self, config: RabbitMQConfig):
        self.config = config
        self.connection: Optional[AbstractRobustConnection] = None
        self.channel: Optional[AbstractRobustChannel] = None

    async def connect(self) -> AbstractRobustChannel:
        """Establish robust connection (auto-reconnects) and open a channel.

        Raises:
            Exception: If connection fails
        """
        try:
            self.connection = await aio_pika.connect_robust(self.config.url)
            self.channel = await self.connection.channel()
            logger.info("RabbitMQ connection established")
            return self.channel

        except Exception as e:
            logger.error(f"Failed to connect to RabbitMQ: {e}")
            raise

    def is_connected(self) -> bool:
        return (
            self.connection is not None
            and not self.connection.is_closed
            and self.channel is not None
            and not self.channel.is_closed
        )

    async def close(self) -> None:
        """Close channel and connection if they exist."""
        try:
            logger.info("Closing RabbitMQ connection...")

            if self.channel and not self.channel.is_closed:
                await self.channel.close()
                logger.info("RabbitMQ channel closed")

            if self.connection and not self.connection.is_closed:
                await self.connection.close()
                logger.info("RabbitMQ connection closed")

        except Exception as e:
            logger.error(f"Error closing RabbitMQ connection: {e}")
            logger.exception("RabbitMQ close error details:")
