from .type import RabbitMQConfig, PublisherConfig, IngestionRequest
from .interface import IMessagePublisher
from .connection import RabbitMQConnection
from .publisher import RabbitMQPublisher, RabbitMQPublisherError

__all__ = [
    # Interfaces
    "IMessagePublisher",
    # Implementations
    "RabbitMQConnection",
    "RabbitMQPublisher",
    # Types
    "RabbitMQConfig",
    "PublisherConfig",
    "IngestionRequest",
    # Errors
    "RabbitMQPublisherError",
]
