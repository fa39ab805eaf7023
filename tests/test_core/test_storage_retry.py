"""Unit tests for the transient storage retry decorator."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from core.config import settings
from core.database import is_transient_error, storage_retry
from core.errors import NotFound, TransientStorageError


def locked_error():
    return OperationalError("UPDATE ProcessingQueue", {}, Exception("database is locked"))


class FlakyRepository:
    def __init__(self, failures):
        self.db = AsyncMock()
        self.failures = list(failures)
        self.calls = 0

    @storage_retry
    async def load(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


class TestIsTransientError:
    def test_operational_error(self):
        assert is_transient_error(locked_error())

    def test_timeouts_and_connection_errors(self):
        assert is_transient_error(asyncio.TimeoutError())
        assert is_transient_error(ConnectionResetError())

    def test_integrity_error_is_not_transient(self):
        assert not is_transient_error(IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")))

    def test_domain_errors_are_not_transient(self):
        assert not is_transient_error(NotFound("Post", "x"))


class TestStorageRetry:
    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self):
        repo = FlakyRepository([locked_error(), locked_error()])

        assert await repo.load() == "ok"
        assert repo.calls == 3
        assert repo.db.rollback.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, monkeypatch):
        monkeypatch.setattr(settings, "database_max_retry_count", 3)
        repo = FlakyRepository([locked_error() for _ in range(5)])

        with pytest.raises(TransientStorageError) as exc_info:
            await repo.load()

        assert repo.calls == 3
        assert exc_info.value.retry_count == 3
        assert exc_info.value.status_code == 503

    @pytest.mark.asyncio
    async def test_non_transient_errors_propagate_immediately(self):
        repo = FlakyRepository([NotFound("Post", "abc")])

        with pytest.raises(NotFound):
            await repo.load()
        assert repo.calls == 1
        repo.db.rollback.assert_not_awaited()

    def test_preserves_function_metadata(self):
        assert FlakyRepository.load.__name__ == "load"
