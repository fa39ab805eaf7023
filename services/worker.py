"""Reference queue worker: claims rows, scores posts, records results."""

import asyncio
import time
from collections import deque
from typing import Deque, Optional

from core.config import settings
from core.database import DatabaseManager
from core.errors import DomainError, EmptyQueue
from core.logger import format_exception_short, logger
from repository.post_repository import PostRepository
from repository.queue_repository import QueueRepository
from services.analysis import SentimentAnalysisService
from services.events import EventPublisher
from services.queue.metrics import (
    active_batches,
    queue_pending_entries,
    worker_batch_duration_seconds,
    worker_items_total,
)
from services.queue.service import QueueService
from services.scorer import ISentimentScorer

ALERT_INTERVAL_SECONDS = 60


class QueueWorker:
    """Processes queue rows in batches until stopped.

    Every batch that completed at least one row publishes ``analytics_update``;
    while the pending backlog stays above the threshold an ``alert`` is
    published at most once a minute.
    """

    def __init__(
        self,
        database: DatabaseManager,
        scorer: ISentimentScorer,
        events: Optional[EventPublisher] = None,
        batch_size: Optional[int] = None,
        poll_interval: Optional[float] = None,
        alert_threshold: Optional[int] = None,
    ):
        self.database = database
        self.scorer = scorer
        self.events = events
        self.batch_size = batch_size or settings.worker_batch_size
        self.poll_interval = poll_interval if poll_interval is not None else settings.worker_poll_interval_seconds
        self.alert_threshold = alert_threshold if alert_threshold is not None else settings.queue_alert_threshold

        self._stopping = asyncio.Event()
        self._completions: Deque[float] = deque()
        self._latencies_ms: Deque[float] = deque(maxlen=500)
        self._last_alert_at: Optional[float] = None

    def stop(self) -> None:
        self._stopping.set()

    async def run(self) -> None:
        logger.info(f"Queue worker started (batch_size={self.batch_size}, poll_interval={self.poll_interval}s)")
        while not self._stopping.is_set():
            try:
                processed = await self.process_batch()
            except DomainError as e:
                logger.error(f"Worker batch failed: {format_exception_short(e)}")
                processed = 0

            if processed == 0:
                try:
                    await asyncio.wait_for(self._stopping.wait(), timeout=self.poll_interval)
                except asyncio.TimeoutError:
                    pass
        logger.info("Queue worker stopped")

    async def process_batch(self) -> int:
        """Claim and process up to ``batch_size`` rows, return how many were claimed."""
        with active_batches.track_inprogress(), worker_batch_duration_seconds.time():
            processed, completed = await self._drain()

        if completed:
            await self._publish_analytics()
        await self._check_backlog()
        return processed

    async def _drain(self):
        processed = 0
        completed = 0
        for _ in range(self.batch_size):
            if self._stopping.is_set():
                break
            async with self.database.session_scope() as session:
                queue = QueueService(session, events=self.events)
                try:
                    entry = await queue.claim_next()
                except EmptyQueue:
                    break

                processed += 1
                post = await PostRepository(session).get_by_id(entry.post_id)
                started = time.perf_counter()
                try:
                    await SentimentAnalysisService(session, self.scorer).process_claimed(post, entry.id)
                except Exception as e:
                    # Row was already marked failed or requeued
                    logger.warning(f"Queue entry {entry.id} not completed: {format_exception_short(e)}")
                    worker_items_total.labels(outcome="failed").inc()
                    continue

                self._latencies_ms.append((time.perf_counter() - started) * 1000)
                self._completions.append(time.monotonic())
                completed += 1
                worker_items_total.labels(outcome="completed").inc()

        return processed, completed

    async def _publish_analytics(self) -> None:
        if self.events is None:
            return
        now = time.monotonic()
        while self._completions and now - self._completions[0] > 60:
            self._completions.popleft()
        last_minute = len(self._completions)
        avg_latency = sum(self._latencies_ms) / len(self._latencies_ms) if self._latencies_ms else 0.0
        await self.events.publish_analytics_update(
            posts_processed_last_minute=last_minute,
            avg_response_time=round(avg_latency, 2),
            current_throughput=float(last_minute),
        )

    async def _check_backlog(self) -> None:
        now = time.monotonic()
        if self._last_alert_at is not None and now - self._last_alert_at < ALERT_INTERVAL_SECONDS:
            return

        async with self.database.session_scope() as session:
            pending = await QueueRepository(session).count_pending()
        queue_pending_entries.set(pending)

        if self.events is None or self.alert_threshold <= 0:
            return
        if pending > self.alert_threshold:
            self._last_alert_at = now
            logger.warning(f"Processing queue backlog {pending} above threshold {self.alert_threshold}")
            await self.events.publish_alert(pending, self.alert_threshold)
