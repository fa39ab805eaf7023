"""Publisher contract used by the ingestion trigger."""

from typing import Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class IMessagePublisher(Protocol):
    """Anything that can hand ingestion requests to the broker."""

    async def setup(self) -> None:
        """Declare the ingestion exchange."""
        ...

    async def publish(
        self,
        message: dict,
        routing_key: Optional[str] = None,
        headers: Optional[Dict[str, object]] = None,
    ) -> None:
        """Publish a JSON message, optionally with AMQP headers."""
        ...

    async def publish_ingestion_request(self, request) -> str:
        """Publish an ingestion request, return the routing key used."""
        ...

    def is_ready(self) -> bool:
        """True once setup() has succeeded."""
        ...


__all__ = ["IMessagePublisher"]
