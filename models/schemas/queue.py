"""Processing queue command schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from core.constants import DEFAULT_PRIORITY, MAX_ERROR_MESSAGE_LENGTH
from models.schemas.base import CamelModel


class EnqueueRequest(CamelModel):
    post_id: UUID
    priority: int = Field(default=DEFAULT_PRIORITY, ge=0, description="Lower is more urgent")


class FailRequest(CamelModel):
    error: str = Field(min_length=1, description=f"Truncated to {MAX_ERROR_MESSAGE_LENGTH} characters")


class QueueEntryResponse(CamelModel):
    id: UUID
    post_id: UUID
    status: str
    priority: int
    created_at: datetime
    processed_at: Optional[datetime] = None
    retry_count: int
    error_message: Optional[str] = None
