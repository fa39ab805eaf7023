from dataclasses import dataclass

from .constant import *


@dataclass
class RedisConfig:
    """Redis connection used to fan platform events out across API replicas.

    Workers publish to the events channel; every API process subscribes and
    relays to its own WebSocket clients. Timeouts are in seconds.
    """

    url: str = DEFAULT_URL
    encoding: str = DEFAULT_ENCODING
    max_connections: int = DEFAULT_MAX_CONNECTIONS
    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    socket_connect_timeout: int = DEFAULT_SOCKET_CONNECT_TIMEOUT
    health_check_interval: int = DEFAULT_HEALTH_CHECK_INTERVAL

    def __post_init__(self):
        if not self.url or not self.url.strip():
            raise ValueError(ERROR_URL_EMPTY)
        if not self.url.startswith(("redis://", "rediss://")):
            raise ValueError(ERROR_INVALID_SCHEME.format(url=self.url))
        if self.max_connections <= 0:
            raise ValueError(ERROR_INVALID_MAX_CONNECTIONS)
        if self.socket_timeout <= 0:
            raise ValueError(ERROR_INVALID_SOCKET_TIMEOUT)


__all__ = [
    "RedisConfig",
]
