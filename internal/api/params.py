"""Query parameter parsing shared by the routes."""

from datetime import timedelta

from core.errors import ValidationError
from models.enums import TimeWindow
from utils.time_utils import parse_time_range


def parse_time_window(value: str, field: str = "timeWindow") -> TimeWindow:
    try:
        return TimeWindow.from_label(value)
    except ValueError:
        raise ValidationError(
            field, f"must be one of 5m, 15m, 1h, 6h, 24h, 7d (got '{value}')", "INVALID_ENUM"
        ) from None


def parse_range(value: str, field: str = "timeRange") -> timedelta:
    try:
        return parse_time_range(value)
    except ValueError as e:
        raise ValidationError(field, str(e), "INVALID_FORMAT") from None
