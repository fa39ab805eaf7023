"""Ingestion trigger and status API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.logger import logger
from internal.api.dependencies import get_ingestion_publisher
from models.schemas.ingestion import (
    IngestionStatusResponse,
    PlatformIngestionStatus,
    QueueStatus,
    TriggerIngestionRequest,
    TriggerIngestionResponse,
)
from pkg.rabbitmq import IMessagePublisher
from services.ingestion import get_ingestion_status, trigger_ingestion
from utils.time_utils import format_duration

router = APIRouter()


@router.post(
    "/ingestion/{platform}/trigger",
    response_model=TriggerIngestionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def trigger_platform_ingestion(
    request: Request,
    platform: str,
    body: TriggerIngestionRequest,
    publisher: Optional[IMessagePublisher] = Depends(get_ingestion_publisher),
):
    """Ask the ingestion collaborator to fetch new posts for a platform."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Triggering {platform} ingestion (priority={body.priority})")

    message = await trigger_ingestion(publisher, platform, body)
    return TriggerIngestionResponse(
        request_id=message.request_id,
        platform=message.platform,
        priority=body.priority,
        queue_priority=message.queue_priority,
    )


@router.get("/ingestion/status", response_model=IngestionStatusResponse)
async def ingestion_status(request: Request, db: AsyncSession = Depends(get_db)):
    """Per-platform ingestion status and processing queue depth."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Getting ingestion status")

    data = await get_ingestion_status(db)
    return IngestionStatusResponse(
        platforms=[PlatformIngestionStatus(**p) for p in data["platforms"]],
        queue_status=QueueStatus(
            pending_analysis=data["pending_analysis"],
            processing=data["processing"],
            avg_processing_time=format_duration(data["avg_processing_time"]),
        ),
    )
