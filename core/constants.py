"""Constants for Sentiment Platform service."""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the error envelope."""

    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Conflicts
    CONFLICT = "CONFLICT"
    DUPLICATE_POST = "DUPLICATE_POST"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"
    DUPLICATE_API_KEY = "DUPLICATE_API_KEY"
    DUPLICATE_ANALYSIS = "DUPLICATE_ANALYSIS"
    DUPLICATE_ACTIVE_ENTRY = "DUPLICATE_ACTIVE_ENTRY"
    RATE_LIMITED = "RATE_LIMITED"

    # State machine
    INVALID_TRANSITION = "INVALID_TRANSITION"
    EMPTY_QUEUE = "EMPTY_QUEUE"

    NOT_FOUND = "NOT_FOUND"

    # Infrastructure
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


# Field length limits
MAX_CONTENT_LENGTH = 4000
MAX_PLATFORM_LENGTH = 50
MAX_USER_ID_LENGTH = 100
MAX_USER_NAME_LENGTH = 255
MAX_SOURCE_URL_LENGTH = 2000
MAX_SOURCE_ID_LENGTH = 100
MAX_LANGUAGE_LENGTH = 10
MAX_KEYWORD_LENGTH = 200
MAX_MODEL_VERSION_LENGTH = 50
MAX_ERROR_MESSAGE_LENGTH = 2000
MAX_EMAIL_LENGTH = 256
MAX_NAME_LENGTH = 100
MAX_PASSWORD_HASH_LENGTH = 512
MAX_API_KEY_LENGTH = 128

# Numeric(8,4) columns hold magnitudes below this bound
MAX_TREND_SCORE_MAGNITUDE = 10000

# Defaults
DEFAULT_LANGUAGE = "en"
DEFAULT_PRIORITY = 5
DEFAULT_DAILY_API_LIMIT = 1000

# Ingestion priority labels -> queue priority (lower is more urgent)
INGESTION_PRIORITIES = {"high": 1, "normal": 5, "low": 9}

# Event channels
CHANNEL_TRENDS = "trends"
CHANNEL_ANALYTICS = "analytics"
CHANNEL_ALERTS = "alerts"
EVENT_CHANNELS = (CHANNEL_TRENDS, CHANNEL_ANALYTICS, CHANNEL_ALERTS)

EVENT_TREND_UPDATE = "trend_update"
EVENT_ANALYTICS_UPDATE = "analytics_update"
EVENT_ALERT = "alert"

# Read side
MAX_PAGE_SIZE = 100
MAX_RECENT_RESULTS = 100
LIST_CONTENT_PREVIEW_LENGTH = 300
