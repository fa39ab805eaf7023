"""
Sentiment Platform queue worker - Main entry point.
Loads config, connects the database, scorer and event channel, and processes
the processing queue until interrupted.
"""

import asyncio
import signal
from typing import Optional

from prometheus_client import start_http_server

from core.config import settings
from core.database import db_manager
from core.logger import logger
from pkg.redis.pubsub import RedisPubSub
from pkg.redis.type import RedisConfig
from services.events import EventPublisher
from services.scorer import HttpSentimentScorer
from services.worker import QueueWorker


async def main():
    """Entry point for the queue worker."""
    pubsub: Optional[RedisPubSub] = None
    scorer: Optional[HttpSentimentScorer] = None

    try:
        logger.info(
            f"========== Starting {settings.service_name} v{settings.service_version} Worker service =========="
        )

        db_manager.initialize()
        if settings.worker_metrics_port > 0:
            start_http_server(settings.worker_metrics_port)
            logger.info(f"Worker metrics on :{settings.worker_metrics_port}/metrics")
        scorer = HttpSentimentScorer()

        events = None
        try:
            pubsub = RedisPubSub(RedisConfig(url=settings.redis_url))
            events = EventPublisher(transport=pubsub, redis_channel=settings.events_channel)
        except Exception as e:
            logger.error(f"Failed to initialize Redis pub/sub: {e}")
            logger.warning("Worker will run without publishing events")

        worker = QueueWorker(db_manager, scorer, events=events)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, worker.stop)
            except NotImplementedError:
                pass

        await worker.run()

    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error(f"Worker error: {e}")
        logger.exception("Worker error details:")
        raise
    finally:
        logger.info("========== Shutting down Worker service ==========")

        if pubsub is not None:
            await pubsub.close()
        if scorer is not None:
            await scorer.close()
        await db_manager.close()

        logger.info("========== Worker service stopped ==========")


if __name__ == "__main__":
    asyncio.run(main())
