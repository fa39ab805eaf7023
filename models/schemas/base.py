"""Base schemas for API responses."""

from datetime import datetime, timezone
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.constants import MAX_PAGE_SIZE

T = TypeVar("T")


class CamelModel(BaseModel):
    """Serialises with camelCase keys, accepts both camelCase and snake_case."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PaginatedResponse(CamelModel, Generic[T]):
    """Paginated list envelope."""

    items: List[T] = Field(description="Items on the requested page")
    total_count: int = Field(description="Total number of items matching the filter")
    page_number: int = Field(description="Current page number (1-based)")
    page_size: int = Field(description="Number of items per page")
    total_pages: int = Field(description="Total number of pages")
    has_previous_page: bool = Field(description="Whether there are previous pages")
    has_next_page: bool = Field(description="Whether there are more pages")


class ErrorDetail(CamelModel):
    """Individual error detail."""

    field: Optional[str] = Field(default=None, description="Field name that caused the error")
    message: str = Field(description="Error message")
    code: Optional[str] = Field(default=None, description="Error code")


class ErrorInfo(CamelModel):
    """Error information for failed responses."""

    code: str = Field(description="Application error code")
    message: str = Field(description="Human-readable error message")
    details: List[ErrorDetail] = Field(default_factory=list, description="Field-level detail")
    request_id: Optional[str] = Field(default=None, description="Request correlation id")
    timestamp: datetime = Field(description="Error timestamp in UTC")


class ErrorResponse(CamelModel):
    """Standard error response format."""

    error: ErrorInfo


class PaginationParams(BaseModel):
    """Pagination parameters."""

    page: int = Field(default=1, ge=1, description="Page number (1-based)")
    page_size: int = Field(default=20, ge=1, le=MAX_PAGE_SIZE, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def create_paginated_response(
    items: List[T], page: int, page_size: int, total_count: int
) -> PaginatedResponse[T]:
    """Create a paginated envelope from parameters."""
    total_pages = (total_count + page_size - 1) // page_size  # Ceiling division

    return PaginatedResponse(
        items=items,
        total_count=total_count,
        page_number=page,
        page_size=page_size,
        total_pages=total_pages,
        has_previous_page=page > 1,
        has_next_page=page < total_pages,
    )


def create_error_response(
    code: str,
    message: str,
    details: Optional[list] = None,
    request_id: Optional[str] = None,
) -> ErrorResponse:
    return ErrorResponse(
        error=ErrorInfo(
            code=code,
            message=message,
            details=[ErrorDetail(**d) for d in (details or [])],
            request_id=request_id,
            timestamp=datetime.now(timezone.utc),
        )
    )
