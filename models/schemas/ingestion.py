"""Ingestion trigger and status schemas."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import Field

from models.schemas.base import CamelModel

IngestionPriority = Literal["low", "normal", "high"]


class IngestionFilters(CamelModel):
    min_upvotes: Optional[int] = Field(default=None, ge=0)
    max_age: Optional[str] = Field(default=None, pattern=r"^\d+[mhd]$", description="e.g. 24h")
    exclude_stickied: Optional[bool] = None


class TriggerIngestionRequest(CamelModel):
    subreddits: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list, description="Generic source names")
    filters: IngestionFilters = Field(default_factory=IngestionFilters)
    priority: IngestionPriority = "normal"


class TriggerIngestionResponse(CamelModel):
    request_id: str
    platform: str
    status: Literal["queued"] = "queued"
    priority: IngestionPriority
    queue_priority: int


class PlatformIngestionStatus(CamelModel):
    platform: str
    status: Literal["running", "idle", "error"]
    last_ingestion: Optional[datetime] = None
    posts_ingested: int
    errors: int
    next_scheduled: Optional[datetime] = None


class QueueStatus(CamelModel):
    pending_analysis: int
    processing: int
    avg_processing_time: str


class IngestionStatusResponse(CamelModel):
    platforms: List[PlatformIngestionStatus] = Field(default_factory=list)
    queue_status: QueueStatus
