DEFAULT_DURABLE = True
DEFAULT_ROUTING_KEY_PREFIX = "ingestion"
MAX_AMQP_PRIORITY = 9

# Errors
ERROR_URL_EMPTY = "url cannot be empty"
ERROR_EXCHANGE_NAME_EMPTY = "exchange_name cannot be empty"
ERROR_ROUTING_KEY_EMPTY = "routing_key cannot be empty"
ERROR_PUBLISHER_NOT_SETUP = "Publisher not setup. Call setup() first."
ERROR_PLATFORM_REQUIRED = "platform is required for ingestion requests"
