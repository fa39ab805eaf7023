"""Async database configuration, session management and transient-failure retry."""

import asyncio
import functools
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from core.config import settings
from core.errors import TransientStorageError
from core.logger import logger


def is_transient_error(exc: BaseException) -> bool:
    """Connection drops, timeouts and locked databases are worth retrying."""
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    if isinstance(exc, (OperationalError, InterfaceError)):
        return True
    return isinstance(exc, (ConnectionError, asyncio.TimeoutError))


def storage_retry(func):
    """Retry a repository coroutine on transient storage failures.

    The wrapped method's owner must expose its session as ``self.db``; the
    session is rolled back before every retry. Once attempts are exhausted the
    last failure is raised as TransientStorageError.
    """

    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        retrying = AsyncRetrying(
            stop=stop_after_attempt(settings.database_max_retry_count),
            wait=wait_exponential(
                multiplier=settings.database_retry_base_delay,
                max=settings.database_max_retry_delay,
            ),
            retry=retry_if_exception(is_transient_error),
            reraise=True,
        )
        attempt_number = 0
        try:
            async for attempt in retrying:
                with attempt:
                    attempt_number = attempt.retry_state.attempt_number
                    if attempt_number > 1:
                        logger.warning(
                            f"Retrying {func.__qualname__} after transient storage error "
                            f"(attempt {attempt_number}/{settings.database_max_retry_count})"
                        )
                        await self.db.rollback()
                    return await func(self, *args, **kwargs)
        except Exception as exc:
            if is_transient_error(exc):
                logger.error(f"Storage unavailable in {func.__qualname__}: {exc}")
                raise TransientStorageError(
                    f"Storage unavailable after {attempt_number} attempts",
                    retry_count=attempt_number,
                ) from exc
            raise

    return wrapper


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, debug: bool = False) -> AsyncEngine:
    """Create an async engine with dialect-appropriate pool settings."""
    engine_kwargs = {"echo": debug, "pool_pre_ping": True}

    if database_url.startswith("sqlite"):
        engine = create_async_engine(database_url, **engine_kwargs)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        return engine

    engine_kwargs["pool_recycle"] = settings.database_pool_recycle
    if database_url.startswith("postgresql+asyncpg"):
        engine_kwargs["connect_args"] = {"command_timeout": settings.database_command_timeout}

    if debug:
        engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_size"] = settings.database_pool_size
        engine_kwargs["max_overflow"] = settings.database_max_overflow

    return create_async_engine(database_url, **engine_kwargs)


class DatabaseManager:
    """Owns the engine and session factory of one process.

    The API creates one per process in the lifespan; the worker builds its
    own and opens a session per claimed batch through session_scope().
    """

    def __init__(self):
        self.engine: Optional[AsyncEngine] = None
        self.async_session_factory: Optional[async_sessionmaker] = None

    def initialize(self, database_url: Optional[str] = None):
        url = database_url or settings.database_url
        try:
            self.engine = build_engine(url, settings.debug)
        except Exception as e:
            logger.error(f"Cannot create storage engine for {url.split('://', 1)[0]}: {e}")
            raise
        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=True,
        )
        logger.info(f"Storage engine ready ({self.engine.dialect.name})")

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session; uncommitted work is rolled back if the body raises."""
        if self.async_session_factory is None:
            raise RuntimeError("DatabaseManager.initialize() has not been called")

        async with self.async_session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def close(self):
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        logger.info("Storage engine disposed")


db_manager = DatabaseManager()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session for FastAPI routes."""
    async with db_manager.session_scope() as session:
        yield session
