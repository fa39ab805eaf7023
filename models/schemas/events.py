"""Event channel message schemas."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from models.schemas.base import CamelModel

Channel = Literal["trends", "analytics", "alerts"]
Severity = Literal["info", "warning", "error"]


class TrendUpdateData(CamelModel):
    keyword: str
    new_mentions: int
    sentiment_change: float
    trend_score: float


class AnalyticsUpdateData(CamelModel):
    posts_processed_last_minute: int
    avg_response_time: float
    current_throughput: float


class AlertData(CamelModel):
    queue_size: int
    threshold: int


class EventEnvelope(CamelModel):
    """Consumers deduplicate on ``id``."""

    id: str
    type: str
    channel: Channel
    timestamp: datetime
    severity: Optional[Severity] = None
    message: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class SubscribeMessage(CamelModel):
    type: Literal["subscribe", "unsubscribe"]
    channels: List[Channel] = Field(default_factory=list)
