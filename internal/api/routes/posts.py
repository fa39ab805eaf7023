"""Posts API routes."""

from datetime import datetime
from typing import Literal, Optional, Sequence
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import LIST_CONTENT_PREVIEW_LENGTH, MAX_PAGE_SIZE
from core.database import get_db
from core.logger import logger
from interfaces.post_repository import PostFilters
from models.database import SocialMediaPost, TrendKeyword
from models.enums import PostStatus, SentimentType
from models.schemas.base import PaginatedResponse, PaginationParams, create_paginated_response
from models.schemas.posts import PostDetail, PostListItem, TrendKeywordLink
from models.schemas.sentiment import to_analysis_result
from repository.post_repository import PostRepository
from repository.trend_repository import TrendRepository
from utils.time_utils import ensure_utc

router = APIRouter()


def _list_fields(post: SocialMediaPost, content: str) -> dict:
    analysis = post.sentiment_analysis
    return {
        "id": post.id,
        "platform": post.platform,
        "author": post.user_name,
        "user_id": post.user_id,
        "content": content,
        "timestamp": ensure_utc(post.timestamp),
        "status": PostStatus(post.status).label,
        "sentiment_type": SentimentType(analysis.overall_sentiment).label if analysis else None,
        "sentiment_score": (
            round(float(analysis.positive_score - analysis.negative_score), 4) if analysis else None
        ),
        "keywords": (analysis.extracted_keywords or []) if analysis else [],
        "source_url": post.source_url,
        "metadata": post.raw_metadata,
    }


def to_list_item(post: SocialMediaPost) -> PostListItem:
    content = post.content
    if len(content) > LIST_CONTENT_PREVIEW_LENGTH:
        content = content[:LIST_CONTENT_PREVIEW_LENGTH] + "..."
    return PostListItem(**_list_fields(post, content))


def to_detail(post: SocialMediaPost, links: Sequence[TrendKeyword] = ()) -> PostDetail:
    analysis = post.sentiment_analysis
    return PostDetail(
        **_list_fields(post, post.content),
        source_id=post.source_id,
        up_votes=post.up_votes,
        down_votes=post.down_votes,
        comment_count=post.comment_count,
        language=post.language,
        created_at=ensure_utc(post.created_at),
        processed_at=ensure_utc(post.processed_at),
        is_deleted=post.is_deleted,
        sentiment_analysis=to_analysis_result(analysis) if analysis else None,
        trend_keywords=[
            TrendKeywordLink(
                trend_analysis_id=link.trend_analysis_id,
                keyword=link.keyword,
                relevance_score=float(link.relevance_score),
            )
            for link in links
        ],
    )


@router.get("/posts", response_model=PaginatedResponse[PostListItem])
async def get_posts(
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE, alias="pageSize"),
    from_date: Optional[datetime] = Query(default=None, alias="fromDate"),
    to_date: Optional[datetime] = Query(default=None, alias="toDate"),
    sentiment_type: Optional[str] = Query(default=None, alias="sentimentType"),
    platform: Optional[str] = Query(default=None),
    query: Optional[str] = Query(default=None, max_length=200),
    sort_by: str = Query(default="timestamp", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
):
    """Paginated posts, newest first by default; soft-deleted posts are hidden."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(
        f"Request {request_id}: Getting posts page {page} (size {page_size}, platform={platform}, "
        f"sentiment={sentiment_type}, query={query})"
    )

    filters = PostFilters(
        platform=platform,
        sentiment=sentiment_type,
        from_date=ensure_utc(from_date),
        to_date=ensure_utc(to_date),
        query=query,
    )
    pagination = PaginationParams(page=page, page_size=page_size)

    posts, total_count = await PostRepository(db).get_posts(
        filters=filters, pagination=pagination, sort_by=sort_by, sort_order=sort_order
    )
    return create_paginated_response(
        items=[to_list_item(post) for post in posts],
        page=page,
        page_size=page_size,
        total_count=total_count,
    )


@router.get("/posts/{post_id}", response_model=PostDetail)
async def get_post(post_id: UUID, db: AsyncSession = Depends(get_db)):
    """Direct lookup; soft-deleted posts are still returned."""
    post = await PostRepository(db).require(post_id)
    links = await TrendRepository(db).get_keywords_for_post(post_id)
    return to_detail(post, links)


@router.delete("/posts/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(request: Request, post_id: UUID, db: AsyncSession = Depends(get_db)):
    """Soft delete: the post leaves list queries, its analysis and trend links stay."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Soft-deleting post {post_id}")

    await PostRepository(db).soft_delete(post_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
