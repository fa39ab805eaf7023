"""Async repository for processing queue rows."""

from datetime import datetime
from typing import Collection, Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import asc, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import logger
from interfaces.queue_repository import IQueueRepository
from models.database import ProcessingQueue, SocialMediaPost
from models.enums import PostStatus

ACTIVE_STATUSES = (PostStatus.PENDING, PostStatus.PROCESSING)


class QueueRepository(IQueueRepository):
    """Row-level queue access. Callers own the transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, queue_id: UUID, for_update: bool = False) -> Optional[ProcessingQueue]:
        query = select(ProcessingQueue).where(ProcessingQueue.id == queue_id)
        if for_update:
            query = query.with_for_update()
        query = query.execution_options(populate_existing=True)
        return (await self.db.execute(query)).scalars().first()

    async def lock_post(self, post_id: UUID) -> bool:
        """Write-lock the post row for the rest of the transaction; False if it does not exist."""
        result = await self.db.execute(
            update(SocialMediaPost)
            .where(SocialMediaPost.id == post_id)
            .values(status=SocialMediaPost.status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def find_active(self, post_id: UUID) -> Optional[ProcessingQueue]:
        query = select(ProcessingQueue).where(
            ProcessingQueue.post_id == post_id,
            ProcessingQueue.status.in_(ACTIVE_STATUSES),
        )
        return (await self.db.execute(query)).scalars().first()

    async def add(self, post_id: UUID, priority: int) -> ProcessingQueue:
        entry = ProcessingQueue(post_id=post_id, priority=priority, status=PostStatus.PENDING)
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def next_pending_id(self, exclude: Collection[UUID] = ()) -> Optional[UUID]:
        """Most urgent Pending row, skipping rows other claimers hold locked."""
        query = (
            select(ProcessingQueue.id)
            .where(ProcessingQueue.status == PostStatus.PENDING)
            .order_by(asc(ProcessingQueue.priority), asc(ProcessingQueue.created_at))
            .limit(1)
            .with_for_update(skip_locked=True)
        )
        if exclude:
            query = query.where(ProcessingQueue.id.not_in(list(exclude)))
        return (await self.db.execute(query)).scalar()

    async def transition_if(
        self,
        queue_id: UUID,
        expected: PostStatus,
        target: PostStatus,
        conditions: Sequence = (),
        **values,
    ) -> bool:
        statement = (
            update(ProcessingQueue)
            .where(ProcessingQueue.id == queue_id, ProcessingQueue.status == expected, *conditions)
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(statement)
        changed = result.rowcount == 1
        if not changed:
            logger.debug(f"Conditional transition {expected.name}->{target.name} lost for {queue_id}")
        return changed

    async def set_post_status(
        self, post_id: UUID, status: PostStatus, processed_at: Optional[datetime] = None
    ) -> None:
        values = {"status": status}
        if processed_at is not None:
            values["processed_at"] = processed_at
        await self.db.execute(
            update(SocialMediaPost)
            .where(SocialMediaPost.id == post_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def count_by_status(self) -> Dict[PostStatus, int]:
        query = select(ProcessingQueue.status, func.count()).group_by(ProcessingQueue.status)
        counts = {status: 0 for status in PostStatus}
        for status, count in (await self.db.execute(query)).all():
            counts[PostStatus(status)] = count
        return counts

    async def count_pending(self) -> int:
        query = select(func.count()).where(ProcessingQueue.status == PostStatus.PENDING)
        return (await self.db.execute(query)).scalar() or 0

    async def recent_completed(self, limit: int = 1000) -> List[ProcessingQueue]:
        query = (
            select(ProcessingQueue)
            .where(ProcessingQueue.status == PostStatus.COMPLETED)
            .order_by(desc(ProcessingQueue.processed_at))
            .limit(limit)
        )
        return list((await self.db.execute(query)).scalars().all())
