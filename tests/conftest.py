"""Shared fixtures.

Repository and service tests run against a file-backed SQLite database so
that separate sessions (concurrent claimers) see each other's commits.
"""

import itertools
import os

os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import settings
from core.database import build_engine
from models.database import Base
from repository.post_repository import PostRepository
from utils.time_utils import utcnow


@pytest.fixture(autouse=True)
def fast_storage_retry(monkeypatch):
    """No back-off between storage retries in tests."""
    monkeypatch.setattr(settings, "database_retry_base_delay", 0.0)


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'sentiment.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def post_factory(db):
    """Create committed posts with unique source ids."""
    counter = itertools.count(1)

    async def create(**overrides):
        n = next(counter)
        fields = {
            "content": f"Post number {n} about python",
            "platform": "reddit",
            "user_id": f"user-{n}",
            "user_name": f"author{n}",
            "source_id": f"t3_{n}",
            "timestamp": utcnow(),
        }
        fields.update(overrides)
        return await PostRepository(db).create(**fields)

    return create
