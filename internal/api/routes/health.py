"""Health check API routes."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.database import get_db
from core.logger import logger

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy"}


@router.get("/health/detailed")
async def detailed_health_check(request: Request, db: AsyncSession = Depends(get_db)) -> Dict[str, Any]:
    """Detailed health check with dependency status.

    Only the database decides overall health; Redis and RabbitMQ degrade
    the event channel and ingestion trigger but not the API.
    """
    try:
        db_healthy = (await db.execute(text("SELECT 1"))).scalar() == 1
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        db_healthy = False

    state = request.app.state
    pubsub = getattr(state, "pubsub", None)
    redis_status = "disabled"
    if pubsub is not None:
        redis_status = "healthy" if await pubsub.health_check() else "unhealthy"

    publisher = getattr(state, "ingestion_publisher", None)
    rabbitmq_status = "disabled"
    if publisher is not None:
        rabbitmq_status = "healthy" if publisher.is_ready() else "unhealthy"

    return {
        "status": "healthy" if db_healthy else "unhealthy",
        "version": settings.service_version,
        "service": settings.service_name,
        "dependencies": {
            "database": "healthy" if db_healthy else "unhealthy",
            "redis": redis_status,
            "rabbitmq": rabbitmq_status,
            "scorer": "configured" if getattr(state, "scorer", None) is not None else "disabled",
        },
        "websocketConnections": state.connections.active_connections,
        "uptime": state.metrics.uptime_seconds,
    }


@router.get("/metrics", include_in_schema=False)
async def prometheus_metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
