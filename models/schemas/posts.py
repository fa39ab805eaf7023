"""Post API schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from models.schemas.base import CamelModel
from models.schemas.sentiment import SentimentAnalysisResult


class PostListItem(CamelModel):
    """Post row in the paginated list (content truncated)."""

    id: UUID
    platform: str
    author: str
    user_id: str
    content: str
    timestamp: datetime
    status: str
    sentiment_type: Optional[str] = None
    sentiment_score: Optional[float] = Field(default=None, description="positive minus negative score")
    keywords: List[Any] = Field(default_factory=list)
    source_url: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class TrendKeywordLink(CamelModel):
    trend_analysis_id: UUID
    keyword: str
    relevance_score: float


class PostDetail(PostListItem):
    """Full post with its analysis."""

    source_id: Optional[str] = None
    up_votes: int = 0
    down_votes: int = 0
    comment_count: int = 0
    language: str
    created_at: datetime
    processed_at: Optional[datetime] = None
    is_deleted: bool = False
    sentiment_analysis: Optional[SentimentAnalysisResult] = None
    trend_keywords: List[TrendKeywordLink] = Field(default_factory=list)
