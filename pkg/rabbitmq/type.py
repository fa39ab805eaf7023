from dataclasses import asdict, dataclass, field
from typing import List, Optional

from .constant import *


@dataclass
class RabbitMQConfig:
    """Broker URL for the ingestion trigger."""

    url: str

    def __post_init__(self):
        if not self.url or not self.url.strip():
            raise ValueError(ERROR_URL_EMPTY)


@dataclass
class PublisherConfig:
    """Exchange that ingestion requests are published to.

    Requests are routed on ``<routing_key>.<platform>``.
    """

    exchange_name: str
    routing_key: str = DEFAULT_ROUTING_KEY_PREFIX
    durable: bool = DEFAULT_DURABLE

    def __post_init__(self):
        if not self.exchange_name or not self.exchange_name.strip():
            raise ValueError(ERROR_EXCHANGE_NAME_EMPTY)

        if not self.routing_key or not self.routing_key.strip():
            raise ValueError(ERROR_ROUTING_KEY_EMPTY)


@dataclass
class IngestionRequest:
    """Ingestion request handed to the external ingestion collaborator.

    ``queue_priority`` is the processing-queue priority the collaborator
    should enqueue the ingested posts with (lower is more urgent).
    """

    request_id: str
    platform: str
    sources: List[str] = field(default_factory=list)
    min_upvotes: Optional[int] = None
    max_age: Optional[str] = None
    exclude_stickied: Optional[bool] = None
    priority: str = "normal"
    queue_priority: int = 5
    requested_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)
