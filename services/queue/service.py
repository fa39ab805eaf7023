"""Processing queue service.

Owns the transaction for every state machine operation: the repository only
issues row-level statements, the service validates the transition, mirrors
the post status and commits. Claims use a conditional update guarded by the
expected status, so two claimers can never both move the same row out of
Pending.
"""

from datetime import timedelta
from typing import Dict, Optional, Set
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.constants import MAX_ERROR_MESSAGE_LENGTH
from core.database import storage_retry
from core.errors import DuplicateActiveEntry, EmptyQueue, InvalidTransition, NotFound, ValidationError
from core.logger import logger
from models.database import ProcessingQueue
from models.enums import PostStatus
from repository.queue_repository import QueueRepository
from services.queue.metrics import queue_transitions_total
from services.queue.state_machine import ensure_transition, status_after_failure
from utils.time_utils import ensure_utc, utcnow


class QueueService:
    """Enqueue, claim, complete, fail and skip processing queue rows."""

    def __init__(
        self,
        db: AsyncSession,
        max_retries: Optional[int] = None,
        alert_threshold: Optional[int] = None,
        events=None,
    ):
        self.db = db
        self.repository = QueueRepository(db)
        self.max_retries = settings.queue_max_retries if max_retries is None else max_retries
        self.alert_threshold = (
            settings.queue_alert_threshold if alert_threshold is None else alert_threshold
        )
        self.events = events

    @storage_retry
    async def enqueue(self, post_id: UUID, priority: Optional[int] = None) -> ProcessingQueue:
        """Insert a Pending row for the post.

        Raises:
            ValidationError: Negative priority.
            NotFound: The post does not exist.
            DuplicateActiveEntry: A Pending or Processing row already exists.
        """
        priority = settings.queue_default_priority if priority is None else priority
        if priority < 0:
            raise ValidationError("priority", "must be zero or greater", "OUT_OF_RANGE")

        # Concurrent enqueues of the same post queue up behind this lock
        if not await self.repository.lock_post(post_id):
            await self.db.commit()
            raise NotFound("SocialMediaPost", post_id)

        active = await self.repository.find_active(post_id)
        if active is not None:
            # The lock statement wrote nothing; committing just releases it
            await self.db.commit()
            raise DuplicateActiveEntry(post_id, active.id)

        entry = await self.repository.add(post_id, priority)
        await self.repository.set_post_status(post_id, PostStatus.PENDING)
        await self.db.commit()
        queue_transitions_total.labels(status="pending").inc()
        logger.info(f"Enqueued post {post_id} as {entry.id} (priority {priority})")

        await self._check_threshold()
        return entry

    @storage_retry
    async def claim_next(self) -> ProcessingQueue:
        """Move the most urgent Pending row to Processing and return it.

        A candidate lost to a concurrent claimer is excluded and the next one
        is tried, until no Pending row is left.
        """
        attempted: Set[UUID] = set()
        while True:
            candidate = await self.repository.next_pending_id(exclude=attempted)
            if candidate is None:
                await self.db.rollback()
                raise EmptyQueue()

            entry = await self._claim_row(candidate)
            if entry is not None:
                return entry
            attempted.add(candidate)

    @storage_retry
    async def claim(self, queue_id: UUID) -> ProcessingQueue:
        """Claim one specific Pending row."""
        entry = await self._require(queue_id)
        ensure_transition(queue_id, entry.status, PostStatus.PROCESSING)

        claimed = await self._claim_row(queue_id)
        if claimed is None:
            current = await self._require(queue_id)
            raise InvalidTransition(queue_id, PostStatus(current.status), PostStatus.PROCESSING)
        return claimed

    async def _claim_row(self, queue_id: UUID) -> Optional[ProcessingQueue]:
        changed = await self.repository.transition_if(
            queue_id, PostStatus.PENDING, PostStatus.PROCESSING
        )
        if not changed:
            await self.db.rollback()
            return None

        entry = await self.repository.get(queue_id)
        await self.repository.set_post_status(entry.post_id, PostStatus.PROCESSING)
        await self.db.commit()
        queue_transitions_total.labels(status="processing").inc()
        logger.info(f"Claimed queue entry {queue_id} for post {entry.post_id}")
        return entry

    @storage_retry
    async def mark_completed(self, queue_id: UUID) -> ProcessingQueue:
        entry = await self._require(queue_id)
        ensure_transition(queue_id, entry.status, PostStatus.COMPLETED)

        now = utcnow()
        await self._transition(queue_id, entry.status, PostStatus.COMPLETED, processed_at=now)
        await self.repository.set_post_status(entry.post_id, PostStatus.COMPLETED, processed_at=now)
        await self.db.commit()
        logger.info(f"Queue entry {queue_id} completed")
        return await self.repository.get(queue_id)

    @storage_retry
    async def mark_failed(self, queue_id: UUID, error: str) -> ProcessingQueue:
        """Record a failure; retry the row until it has failed more than max_retries times."""
        entry = await self._require(queue_id)
        ensure_transition(queue_id, entry.status, PostStatus.FAILED)

        retry_count = entry.retry_count + 1
        target = status_after_failure(retry_count, self.max_retries)
        message = (error or "")[:MAX_ERROR_MESSAGE_LENGTH]

        await self._transition(
            queue_id,
            PostStatus.PROCESSING,
            target,
            conditions=(ProcessingQueue.retry_count == entry.retry_count,),
            retry_count=retry_count,
            error_message=message,
        )
        await self.repository.set_post_status(entry.post_id, target)
        await self.db.commit()

        if target == PostStatus.FAILED:
            logger.error(f"Queue entry {queue_id} failed permanently after {retry_count} attempts: {message}")
        else:
            logger.warning(
                f"Queue entry {queue_id} failed (attempt {retry_count}/{self.max_retries + 1}), requeued: {message}"
            )
        return await self.repository.get(queue_id)

    @storage_retry
    async def mark_skipped(self, queue_id: UUID) -> ProcessingQueue:
        entry = await self._require(queue_id)
        ensure_transition(queue_id, entry.status, PostStatus.SKIPPED)

        await self._transition(queue_id, PostStatus.PENDING, PostStatus.SKIPPED)
        await self.repository.set_post_status(entry.post_id, PostStatus.SKIPPED)
        await self.db.commit()
        logger.info(f"Queue entry {queue_id} skipped")
        return await self.repository.get(queue_id)

    @storage_retry
    async def get(self, queue_id: UUID) -> ProcessingQueue:
        return await self._require(queue_id)

    @storage_retry
    async def queue_stats(self) -> Dict[str, object]:
        """Row counts per status label plus the average processing time of
        recently completed rows."""
        counts = await self.repository.count_by_status()
        completed = await self.repository.recent_completed()

        durations = [
            ensure_utc(row.processed_at) - ensure_utc(row.created_at)
            for row in completed
            if row.processed_at is not None
        ]
        avg = sum(durations, timedelta(0)) / len(durations) if durations else timedelta(0)

        stats: Dict[str, object] = {status.label: count for status, count in counts.items()}
        stats["avg_processing_time"] = avg
        return stats

    async def _require(self, queue_id: UUID) -> ProcessingQueue:
        entry = await self.repository.get(queue_id)
        if entry is None:
            raise NotFound("ProcessingQueue", queue_id)
        return entry

    async def _transition(
        self, queue_id: UUID, current: PostStatus, target: PostStatus, conditions=(), **values
    ) -> None:
        changed = await self.repository.transition_if(
            queue_id, current, target, conditions=conditions, **values
        )
        if not changed:
            # Another worker moved the row between our read and the update.
            await self.db.rollback()
            latest = await self._require(queue_id)
            raise InvalidTransition(queue_id, PostStatus(latest.status), target)
        queue_transitions_total.labels(status=target.name.lower()).inc()

    async def _check_threshold(self) -> None:
        if self.events is None or self.alert_threshold <= 0:
            return
        pending = await self.repository.count_pending()
        if pending == self.alert_threshold:
            logger.warning(f"Processing queue reached {pending} pending entries")
            await self.events.publish_alert(pending, self.alert_threshold)
