"""Route-level application: middleware, the error envelope and router wiring.

Connections to Redis, RabbitMQ and the scorer are attached by the lifespan in
commands.api.main; without it the app serves from the database alone.
"""

import time
import uuid
from typing import Any, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.config import settings
from core.constants import ErrorCode
from core.errors import DomainError
from core.logger import logger
from core.metrics import RequestMetrics
from models.schemas.base import create_error_response
from services.events import ConnectionManager, EventPublisher

REQUEST_ID_HEADER = "X-Request-ID"


app = FastAPI(
    title="Sentiment Platform API",
    description="REST and WebSocket API over posts, sentiment analyses, trends and the processing queue",
    version=settings.service_version,
    docs_url="/swagger/index.html",
    redoc_url=None,
    openapi_url="/openapi.json",
    root_path=settings.api_root_path if settings.api_root_path else None
)

# Process-wide collaborators; the lifespan swaps in connected clients
app.state.metrics = RequestMetrics()
app.state.connections = ConnectionManager()
app.state.events = EventPublisher(local=app.state.connections)
app.state.scorer = None
app.state.ingestion_publisher = None
app.state.pubsub = None


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.api_cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
)


@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    """Log incoming requests and responses, feed request metrics."""
    request_id = getattr(request.state, "request_id", "unknown")
    start_time = time.perf_counter()

    logger.info(
        f"Request {request_id}: {request.method} {request.url.path} "
        f"from {request.client.host if request.client else 'unknown'}"
    )

    response = await call_next(request)

    duration = (time.perf_counter() - start_time) * 1000
    request.app.state.metrics.record(duration, response.status_code)
    logger.info(f"Response {request_id}: {response.status_code} ({duration:.1f}ms)")

    return response


# Registered last so it runs first and the id is visible to logging_middleware
@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a correlation id, honouring one supplied by the caller."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[List[dict]] = None,
) -> JSONResponse:
    """Render the structured error envelope."""
    request_id = getattr(request.state, "request_id", None)
    body = create_error_response(str(code), message, details, request_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True),
        headers={REQUEST_ID_HEADER: request_id} if request_id else None,
    )


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    request_id = getattr(request.state, "request_id", "unknown")
    if exc.status_code >= 500:
        logger.error(f"Request {request_id}: {exc.code} {exc.message}")
    else:
        logger.warning(f"Request {request_id}: {exc.code} {exc.message}")
    return error_response(request, exc.status_code, exc.code, exc.message, exc.details)


def _validation_field(loc: Any) -> str:
    parts = [str(part) for part in loc if part not in ("body", "query", "path", "header")]
    return ".".join(parts) or "request"


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {
            "field": _validation_field(error.get("loc", ())),
            "message": error.get("msg", "invalid value"),
            "code": str(error.get("type", "invalid")).upper(),
        }
        for error in exc.errors()
    ]
    logger.warning(f"Request {getattr(request.state, 'request_id', 'unknown')}: validation failed {details}")
    return error_response(request, 422, ErrorCode.VALIDATION_ERROR, "Request validation failed", details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = ErrorCode.NOT_FOUND if exc.status_code == 404 else f"HTTP_{exc.status_code}"
    return error_response(request, exc.status_code, code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    logger.exception(f"Request {request_id}: unhandled {type(exc).__name__}: {exc}")

    return error_response(request, 500, ErrorCode.INTERNAL_ERROR, "Internal server error")


from internal.api.routes import analytics, events, health, ingestion, posts, queue, sentiment, trends

app.include_router(sentiment.router, prefix=settings.api_prefix, tags=["sentiment"])
app.include_router(trends.router, prefix=settings.api_prefix, tags=["trends"])
app.include_router(analytics.router, prefix=settings.api_prefix, tags=["analytics"])
app.include_router(ingestion.router, prefix=settings.api_prefix, tags=["ingestion"])
app.include_router(posts.router, prefix=settings.api_prefix, tags=["posts"])
app.include_router(queue.router, prefix=settings.api_prefix, tags=["queue"])
app.include_router(health.router, tags=["health"])
app.include_router(events.router, tags=["events"])
