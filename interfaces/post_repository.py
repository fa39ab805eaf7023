"""Abstract repository interface for social media posts."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional, Tuple
from uuid import UUID

from models.database import SocialMediaPost
from models.schemas.base import PaginationParams


class PostFilters:
    """Filter parameters for post queries.

    ``sentiment`` is either a three-way polarity (positive/neutral/negative)
    or an exact five-point label (very_negative .. very_positive).
    """

    def __init__(
        self,
        platform: Optional[str] = None,
        sentiment: Optional[str] = None,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        query: Optional[str] = None,
        include_deleted: bool = False,
    ):
        self.platform = platform
        self.sentiment = sentiment
        self.from_date = from_date
        self.to_date = to_date
        self.query = query
        self.include_deleted = include_deleted


class IPostRepository(ABC):
    """Abstract interface for post persistence."""

    @abstractmethod
    async def create(self, **fields) -> SocialMediaPost:
        """Insert a Pending post; raises DuplicatePost on (sourceId, platform)."""
        pass

    @abstractmethod
    async def get_by_id(self, post_id: UUID) -> Optional[SocialMediaPost]:
        """Direct id lookup, soft-deleted posts included."""
        pass

    @abstractmethod
    async def get_posts(
        self,
        filters: PostFilters,
        pagination: PaginationParams,
        sort_by: str = "timestamp",
        sort_order: str = "desc",
    ) -> Tuple[List[SocialMediaPost], int]:
        """Get paginated posts with filtering and sorting.

        Returns:
            Tuple of (posts_list, total_count)
        """
        pass

    @abstractmethod
    async def soft_delete(self, post_id: UUID) -> SocialMediaPost:
        pass

    @abstractmethod
    async def hard_delete(self, post_id: UUID) -> None:
        pass
