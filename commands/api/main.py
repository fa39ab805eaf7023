"""
Sentiment Platform API - Main entry point.
Connects storage, the scoring client, the event relay and the ingestion
publisher, then serves the HTTP and WebSocket routes.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI  # type: ignore

from core.config import settings
from core.database import db_manager
from core.logger import logger
from internal.api.main import app as internal_app
from pkg.rabbitmq import PublisherConfig, RabbitMQConfig, RabbitMQConnection, RabbitMQPublisher
from pkg.redis.pubsub import RedisPubSub
from pkg.redis.type import RedisConfig
from services.events import EventPublisher, relay_events
from services.scorer import HttpSentimentScorer


async def start_event_relay(app: FastAPI) -> Optional[asyncio.Task]:
    """Attach Redis pub/sub to app.state and start relaying to local sockets.

    Without Redis the EventPublisher already on app.state keeps delivering to
    this replica's WebSocket clients.
    """
    try:
        pubsub = RedisPubSub(RedisConfig(url=settings.redis_url))
    except Exception as e:
        logger.error(f"Invalid Redis configuration: {e}")
        return None

    if not await pubsub.health_check():
        await pubsub.close()
        logger.warning("Redis unreachable, events stay on this replica")
        return None

    app.state.pubsub = pubsub
    app.state.events = EventPublisher(transport=pubsub, redis_channel=settings.events_channel)
    logger.info(f"Relaying events from Redis channel '{settings.events_channel}'")
    return asyncio.create_task(relay_events(pubsub, settings.events_channel, app.state.connections))


async def connect_ingestion(app: FastAPI) -> Optional[RabbitMQConnection]:
    """Open the broker connection used by the ingestion trigger."""
    connection = RabbitMQConnection(RabbitMQConfig(url=settings.rabbitmq_url))
    try:
        channel = await connection.connect()
        publisher = RabbitMQPublisher(
            channel,
            PublisherConfig(
                exchange_name=settings.ingestion_exchange,
                routing_key=settings.ingestion_routing_key_prefix,
            ),
        )
        await publisher.setup()
    except Exception as e:
        logger.error(f"Ingestion trigger disabled, broker setup failed: {e}")
        await connection.close()
        return None

    app.state.ingestion_publisher = publisher
    return connection


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.service_name} v{settings.service_version} on {settings.api_host}:{settings.api_port}")

    db_manager.initialize()
    app.state.scorer = HttpSentimentScorer()
    logger.info(f"Scoring service at {settings.scorer_url}")

    relay_task = await start_event_relay(app)
    rabbitmq = await connect_ingestion(app)

    try:
        yield
    finally:
        logger.info("Stopping API service")

        if relay_task is not None:
            relay_task.cancel()
            try:
                await relay_task
            except asyncio.CancelledError:
                pass

        if app.state.pubsub is not None:
            await app.state.pubsub.close()
        if rabbitmq is not None:
            await rabbitmq.close()
        await app.state.scorer.close()
        await db_manager.close()

        logger.info("API service stopped")


def create_app() -> FastAPI:
    """Bind the service lifespan to the route-level application."""
    app = internal_app
    app.router.lifespan_context = lifespan
    return app


app = create_app()


# Run with: python -m commands.api.main
if __name__ == "__main__":
    import uvicorn  # type: ignore

    uvicorn.run(
        "commands.api.main:app" if settings.api_reload else app,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level="info",
    )
