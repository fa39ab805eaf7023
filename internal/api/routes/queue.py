"""Processing queue command routes for external workers."""

from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.logger import logger
from internal.api.dependencies import get_event_publisher
from models.database import ProcessingQueue
from models.enums import PostStatus
from models.schemas.queue import EnqueueRequest, FailRequest, QueueEntryResponse
from services.events import EventPublisher
from services.queue.service import QueueService
from utils.time_utils import ensure_utc

router = APIRouter()


def to_entry_response(entry: ProcessingQueue) -> QueueEntryResponse:
    return QueueEntryResponse(
        id=entry.id,
        post_id=entry.post_id,
        status=PostStatus(entry.status).label,
        priority=entry.priority,
        created_at=ensure_utc(entry.created_at),
        processed_at=ensure_utc(entry.processed_at),
        retry_count=entry.retry_count,
        error_message=entry.error_message,
    )


@router.post("/queue", response_model=QueueEntryResponse, status_code=status.HTTP_201_CREATED)
async def enqueue(
    request: Request,
    body: EnqueueRequest,
    db: AsyncSession = Depends(get_db),
    events: EventPublisher = Depends(get_event_publisher),
):
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info(f"Request {request_id}: Enqueue post {body.post_id} (priority {body.priority})")
    entry = await QueueService(db, events=events).enqueue(body.post_id, body.priority)
    return to_entry_response(entry)


@router.post("/queue/claim", response_model=QueueEntryResponse)
async def claim_next(db: AsyncSession = Depends(get_db)):
    """Claim the most urgent Pending row; 404 EMPTY_QUEUE when there is none."""
    return to_entry_response(await QueueService(db).claim_next())


@router.get("/queue/{queue_id}", response_model=QueueEntryResponse)
async def get_entry(queue_id: UUID, db: AsyncSession = Depends(get_db)):
    return to_entry_response(await QueueService(db).get(queue_id))


@router.post("/queue/{queue_id}/complete", response_model=QueueEntryResponse)
async def complete(queue_id: UUID, db: AsyncSession = Depends(get_db)):
    return to_entry_response(await QueueService(db).mark_completed(queue_id))


@router.post("/queue/{queue_id}/fail", response_model=QueueEntryResponse)
async def fail(queue_id: UUID, body: FailRequest, db: AsyncSession = Depends(get_db)):
    return to_entry_response(await QueueService(db).mark_failed(queue_id, body.error))


@router.post("/queue/{queue_id}/skip", response_model=QueueEntryResponse)
async def skip(queue_id: UUID, db: AsyncSession = Depends(get_db)):
    return to_entry_response(await QueueService(db).mark_skipped(queue_id))
