"""Tests for QueueService against SQLite."""

import asyncio
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy import select

from core.errors import DuplicateActiveEntry, EmptyQueue, InvalidTransition, NotFound, ValidationError
from models.database import ProcessingQueue, SocialMediaPost
from models.enums import PostStatus
from services.queue.service import QueueService


async def post_status(session_factory, post_id):
    async with session_factory() as session:
        return (await session.get(SocialMediaPost, post_id)).status


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueue_creates_pending_row(self, db, post_factory):
        post = await post_factory()
        entry = await QueueService(db).enqueue(post.id, priority=3)
        assert entry.status == PostStatus.PENDING
        assert entry.priority == 3
        assert entry.retry_count == 0

    @pytest.mark.asyncio
    async def test_default_priority(self, db, post_factory):
        post = await post_factory()
        entry = await QueueService(db).enqueue(post.id)
        assert entry.priority == 5

    @pytest.mark.asyncio
    async def test_duplicate_active_entry_rejected(self, db, post_factory):
        post = await post_factory()
        queue = QueueService(db)
        first = await queue.enqueue(post.id)

        with pytest.raises(DuplicateActiveEntry) as exc_info:
            await queue.enqueue(post.id)
        assert exc_info.value.queue_id == first.id

        await queue.claim(first.id)
        with pytest.raises(DuplicateActiveEntry):
            await queue.enqueue(post.id)

    @pytest.mark.asyncio
    async def test_re_enqueue_after_terminal_state(self, db, post_factory):
        post = await post_factory()
        queue = QueueService(db)
        first = await queue.enqueue(post.id)
        await queue.mark_skipped(first.id)

        second = await queue.enqueue(post.id)
        assert second.id != first.id

    @pytest.mark.asyncio
    async def test_unknown_post(self, db):
        with pytest.raises(NotFound):
            await QueueService(db).enqueue(uuid4())

    @pytest.mark.asyncio
    async def test_negative_priority(self, db, post_factory):
        post = await post_factory()
        with pytest.raises(ValidationError):
            await QueueService(db).enqueue(post.id, priority=-1)

    @pytest.mark.asyncio
    async def test_alert_when_pending_reaches_threshold(self, db, post_factory):
        events = AsyncMock()
        queue = QueueService(db, alert_threshold=2, events=events)
        for _ in range(3):
            await queue.enqueue((await post_factory()).id)
        events.publish_alert.assert_awaited_once_with(2, 2)


class TestClaim:
    @pytest.mark.asyncio
    async def test_claims_by_priority_then_age(self, db, post_factory):
        queue = QueueService(db)
        first = await queue.enqueue((await post_factory()).id, priority=5)
        urgent = await queue.enqueue((await post_factory()).id, priority=1)
        second = await queue.enqueue((await post_factory()).id, priority=5)

        claimed = [(await queue.claim_next()).id for _ in range(3)]

        assert claimed == [urgent.id, first.id, second.id]

    @pytest.mark.asyncio
    async def test_claim_mirrors_post_status(self, db, session_factory, post_factory):
        post = await post_factory()
        queue = QueueService(db)
        await queue.enqueue(post.id)
        entry = await queue.claim_next()

        assert entry.status == PostStatus.PROCESSING
        assert await post_status(session_factory, post.id) == PostStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_empty_queue(self, db):
        with pytest.raises(EmptyQueue) as exc_info:
            await QueueService(db).claim_next()
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_skips_non_pending_rows(self, db, post_factory):
        queue = QueueService(db)
        entry = await queue.enqueue((await post_factory()).id)
        await queue.mark_skipped(entry.id)
        with pytest.raises(EmptyQueue):
            await queue.claim_next()

    @pytest.mark.asyncio
    async def test_concurrent_claimers_never_share_a_row(self, db, session_factory, post_factory):
        queue = QueueService(db)
        for _ in range(3):
            await queue.enqueue((await post_factory()).id)

        async def claim_one():
            async with session_factory() as session:
                try:
                    return (await QueueService(session).claim_next()).id
                except EmptyQueue:
                    return None

        results = await asyncio.gather(*(claim_one() for _ in range(5)))
        claimed = [r for r in results if r is not None]

        assert len(claimed) == 3
        assert len(set(claimed)) == 3

    @pytest.mark.asyncio
    async def test_concurrent_enqueues_keep_one_active_row(self, session_factory, post_factory):
        post_id = (await post_factory()).id

        async def enqueue_one():
            async with session_factory() as session:
                try:
                    await QueueService(session).enqueue(post_id)
                    return "ok"
                except DuplicateActiveEntry:
                    return "duplicate"

        results = await asyncio.gather(*(enqueue_one() for _ in range(3)))

        assert results.count("ok") == 1
        assert results.count("duplicate") == 2
        async with session_factory() as session:
            rows = (
                await session.execute(select(ProcessingQueue).where(ProcessingQueue.post_id == post_id))
            ).scalars().all()
        assert len(rows) == 1
        assert rows[0].status == PostStatus.PENDING

    @pytest.mark.asyncio
    async def test_claim_specific_row_twice(self, db, post_factory):
        queue = QueueService(db)
        entry = await queue.enqueue((await post_factory()).id)
        await queue.claim(entry.id)
        with pytest.raises(InvalidTransition):
            await queue.claim(entry.id)


class TestComplete:
    @pytest.mark.asyncio
    async def test_complete_sets_processed_at_on_row_and_post(self, db, session_factory, post_factory):
        post = await post_factory()
        queue = QueueService(db)
        entry = await queue.enqueue(post.id)
        await queue.claim(entry.id)

        done = await queue.mark_completed(entry.id)

        assert done.status == PostStatus.COMPLETED
        assert done.processed_at is not None
        async with session_factory() as session:
            stored = await session.get(SocialMediaPost, post.id)
            assert stored.status == PostStatus.COMPLETED
            assert stored.processed_at is not None

    @pytest.mark.asyncio
    async def test_complete_requires_processing(self, db, post_factory):
        queue = QueueService(db)
        entry = await queue.enqueue((await post_factory()).id)
        with pytest.raises(InvalidTransition):
            await queue.mark_completed(entry.id)

    @pytest.mark.asyncio
    async def test_unknown_row(self, db):
        with pytest.raises(NotFound):
            await QueueService(db).mark_completed(uuid4())


class TestFail:
    @pytest.mark.asyncio
    async def test_retries_then_fails_permanently(self, db, session_factory, post_factory):
        post = await post_factory()
        queue = QueueService(db, max_retries=2)
        entry = await queue.enqueue(post.id)

        statuses = []
        for attempt in range(3):
            await queue.claim(entry.id)
            result = await queue.mark_failed(entry.id, f"attempt {attempt + 1} failed")
            statuses.append((result.status, result.retry_count))

        assert statuses == [
            (PostStatus.PENDING, 1),
            (PostStatus.PENDING, 2),
            (PostStatus.FAILED, 3),
        ]
        assert result.error_message == "attempt 3 failed"
        assert await post_status(session_factory, post.id) == PostStatus.FAILED

    @pytest.mark.asyncio
    async def test_error_message_truncated(self, db, post_factory):
        queue = QueueService(db)
        entry = await queue.enqueue((await post_factory()).id)
        await queue.claim(entry.id)
        result = await queue.mark_failed(entry.id, "x" * 5000)
        assert len(result.error_message) == 2000

    @pytest.mark.asyncio
    async def test_fail_requires_processing(self, db, post_factory):
        queue = QueueService(db)
        entry = await queue.enqueue((await post_factory()).id)
        with pytest.raises(InvalidTransition):
            await queue.mark_failed(entry.id, "boom")


class TestSkip:
    @pytest.mark.asyncio
    async def test_skip_pending(self, db, session_factory, post_factory):
        post = await post_factory()
        queue = QueueService(db)
        entry = await queue.enqueue(post.id)
        skipped = await queue.mark_skipped(entry.id)
        assert skipped.status == PostStatus.SKIPPED
        assert await post_status(session_factory, post.id) == PostStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_cannot_skip_processing(self, db, post_factory):
        queue = QueueService(db)
        entry = await queue.enqueue((await post_factory()).id)
        await queue.claim(entry.id)
        with pytest.raises(InvalidTransition):
            await queue.mark_skipped(entry.id)


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_per_status(self, db, post_factory):
        queue = QueueService(db)
        for _ in range(2):
            await queue.enqueue((await post_factory()).id)
        entry = await queue.claim_next()
        await queue.mark_completed(entry.id)

        stats = await queue.queue_stats()

        assert stats["pending"] == 1
        assert stats["completed"] == 1
        assert stats["failed"] == 0
        assert stats["avg_processing_time"].total_seconds() >= 0
