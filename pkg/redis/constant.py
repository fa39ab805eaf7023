DEFAULT_URL = "redis://localhost:6379/0"
DEFAULT_ENCODING = "utf-8"
DEFAULT_MAX_CONNECTIONS = 50
DEFAULT_SOCKET_TIMEOUT = 5
DEFAULT_SOCKET_CONNECT_TIMEOUT = 5
DEFAULT_HEALTH_CHECK_INTERVAL = 30

# Errors
ERROR_URL_EMPTY = "url cannot be empty"
ERROR_INVALID_SCHEME = "url must start with redis:// or rediss://, got {url}"
ERROR_INVALID_MAX_CONNECTIONS = "max_connections must be positive"
ERROR_INVALID_SOCKET_TIMEOUT = "socket_timeout must be positive"
ERROR_CHANNEL_EMPTY = "channel cannot be empty"
