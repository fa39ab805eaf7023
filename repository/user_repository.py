"""Async repository for platform users.

Only stores account data; authentication flows live outside this service.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import storage_retry
from core.errors import DuplicateApiKey, DuplicateEmail, NotFound, RateLimited, field_detail
from core.logger import logger
from models.database import User
from models.enums import UserRole
from utils.time_utils import utcnow


class UserRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @storage_retry
    async def create(
        self,
        email: str,
        first_name: str,
        last_name: str,
        password_hash: str,
        role: UserRole = UserRole.VIEWER,
        api_key: Optional[str] = None,
        daily_api_limit: Optional[int] = None,
    ) -> User:
        """Insert a user; raises DuplicateEmail / DuplicateApiKey on conflicts."""
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            password_hash=password_hash,
            role=role,
            api_key=api_key,
        )
        if daily_api_limit is not None:
            user.daily_api_limit = daily_api_limit

        if await self.get_by_email(user.email) is not None:
            raise self._duplicate_email(user.email)
        if api_key and await self.get_by_api_key(api_key) is not None:
            raise self._duplicate_api_key()

        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            if api_key and "apikey" in str(exc.orig).lower():
                raise self._duplicate_api_key() from exc
            raise self._duplicate_email(user.email) from exc

        logger.info(f"Created user {user.id} ({user.role.name})")
        return user

    @staticmethod
    def _duplicate_email(email: str) -> DuplicateEmail:
        return DuplicateEmail(
            f"User with email '{email}' already exists",
            details=[field_detail("email", "already registered", "DUPLICATE_EMAIL")],
        )

    @staticmethod
    def _duplicate_api_key() -> DuplicateApiKey:
        return DuplicateApiKey(
            "API key is already assigned",
            details=[field_detail("apiKey", "already assigned", "DUPLICATE_API_KEY")],
        )

    @storage_retry
    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    @storage_retry
    async def get_by_email(self, email: str) -> Optional[User]:
        query = select(User).where(User.email == email.strip().lower())
        return (await self.db.execute(query)).scalars().first()

    @storage_retry
    async def get_by_api_key(self, api_key: str) -> Optional[User]:
        query = select(User).where(User.api_key == api_key)
        return (await self.db.execute(query)).scalars().first()

    @storage_retry
    async def record_login(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound("User", user_id)
        user.last_login_at = utcnow()
        await self.db.commit()
        return user

    @storage_retry
    async def register_api_call(self, user_id: UUID) -> int:
        """Count one API call against today's limit, return the new count.

        The increment is a single conditional UPDATE so concurrent calls cannot
        push the counter past the limit.
        """
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.api_calls_today < User.daily_api_limit)
            .values(api_calls_today=User.api_calls_today + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            user = await self.db.get(User, user_id, populate_existing=True)
            if user is None:
                raise NotFound("User", user_id)
            logger.warning(f"User {user_id} reached the daily API limit of {user.daily_api_limit}")
            raise RateLimited(
                f"Daily API limit of {user.daily_api_limit} calls reached",
                details=[field_detail("apiCallsToday", "daily limit reached", "RATE_LIMITED")],
            )
        await self.db.commit()

        calls = (
            await self.db.execute(select(User.api_calls_today).where(User.id == user_id))
        ).scalar()
        return calls

    @storage_retry
    async def reset_daily_api_calls(self) -> int:
        """Zero every user's counter; called by the external daily rollover job."""
        result = await self.db.execute(
            update(User)
            .where(User.api_calls_today != 0)
            .values(api_calls_today=0)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Reset daily API call counters for {result.rowcount} users")
        return result.rowcount
