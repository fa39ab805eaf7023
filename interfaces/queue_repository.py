"""Abstract repository interface for the processing queue."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Collection, Dict, List, Optional, Sequence
from uuid import UUID

from models.database import ProcessingQueue
from models.enums import PostStatus


class IQueueRepository(ABC):
    """Row-level access to ProcessingQueue; transitions live in the service."""

    @abstractmethod
    async def get(self, queue_id: UUID, for_update: bool = False) -> Optional[ProcessingQueue]:
        pass

    @abstractmethod
    async def lock_post(self, post_id: UUID) -> bool:
        """Serialize writers of one post's queue rows."""
        pass

    @abstractmethod
    async def find_active(self, post_id: UUID) -> Optional[ProcessingQueue]:
        """Pending or Processing row for the post, if any."""
        pass

    @abstractmethod
    async def add(self, post_id: UUID, priority: int) -> ProcessingQueue:
        pass

    @abstractmethod
    async def next_pending_id(self, exclude: Collection[UUID] = ()) -> Optional[UUID]:
        """Most urgent Pending row: priority ASC, createdAt ASC."""
        pass

    @abstractmethod
    async def transition_if(
        self,
        queue_id: UUID,
        expected: PostStatus,
        target: PostStatus,
        conditions: Sequence = (),
        **values,
    ) -> bool:
        """Conditional update; True only if the row was still in ``expected``."""
        pass

    @abstractmethod
    async def set_post_status(
        self, post_id: UUID, status: PostStatus, processed_at: Optional[datetime] = None
    ) -> None:
        pass

    @abstractmethod
    async def count_by_status(self) -> Dict[PostStatus, int]:
        pass

    @abstractmethod
    async def recent_completed(self, limit: int = 1000) -> List[ProcessingQueue]:
        pass
