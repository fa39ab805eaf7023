"""Dependency injection for API endpoints.

Provides FastAPI dependencies for the clients that are initialized once
during application startup and kept on ``app.state``.
"""

from typing import Optional

from fastapi import Request

from core.errors import UpstreamError
from core.metrics import RequestMetrics
from pkg.rabbitmq import IMessagePublisher
from services.events import EventPublisher
from services.scorer import ISentimentScorer


def get_scorer(request: Request) -> ISentimentScorer:
    """Scoring service client.

    Raises:
        UpstreamError: If the client was not initialized (502)
    """
    scorer = getattr(request.app.state, "scorer", None)
    if scorer is None:
        raise UpstreamError("Scoring service client is not available")
    return scorer


def get_event_publisher(request: Request) -> EventPublisher:
    return request.app.state.events


def get_ingestion_publisher(request: Request) -> Optional[IMessagePublisher]:
    """RabbitMQ publisher, or None while the broker is unreachable."""
    return getattr(request.app.state, "ingestion_publisher", None)


def get_metrics(request: Request) -> RequestMetrics:
    return request.app.state.metrics
