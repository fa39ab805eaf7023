"""Integer-backed enums persisted bit-for-bit as their integer values."""

from enum import IntEnum
from typing import Optional


class PostStatus(IntEnum):
    PENDING = 0
    PROCESSING = 1
    COMPLETED = 2
    FAILED = 3
    SKIPPED = 4

    @property
    def is_active(self) -> bool:
        return self in (PostStatus.PENDING, PostStatus.PROCESSING)

    @property
    def label(self) -> str:
        return self.name.lower()


class SentimentType(IntEnum):
    VERY_NEGATIVE = -2
    NEGATIVE = -1
    NEUTRAL = 0
    POSITIVE = 1
    VERY_POSITIVE = 2

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def polarity(self) -> str:
        """Collapse to the three-way positive/neutral/negative bucket."""
        if self > 0:
            return "positive"
        if self < 0:
            return "negative"
        return "neutral"

    @classmethod
    def from_label(cls, label: str) -> "SentimentType":
        try:
            return cls[label.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown sentiment type '{label}'") from None


class TimeWindow(IntEnum):
    """Trend window; the value is the window length in minutes."""

    FIVE_MINUTES = 5
    FIFTEEN_MINUTES = 15
    ONE_HOUR = 60
    SIX_HOURS = 360
    TWENTY_FOUR_HOURS = 1440
    SEVEN_DAYS = 10080

    @property
    def label(self) -> str:
        return _WINDOW_LABELS[self]

    @property
    def minutes(self) -> int:
        return int(self)

    @classmethod
    def from_label(cls, label: str) -> "TimeWindow":
        for window, window_label in _WINDOW_LABELS.items():
            if window_label == label:
                return window
        raise ValueError(f"Unknown time window '{label}'")


_WINDOW_LABELS = {
    TimeWindow.FIVE_MINUTES: "5m",
    TimeWindow.FIFTEEN_MINUTES: "15m",
    TimeWindow.ONE_HOUR: "1h",
    TimeWindow.SIX_HOURS: "6h",
    TimeWindow.TWENTY_FOUR_HOURS: "24h",
    TimeWindow.SEVEN_DAYS: "7d",
}


class UserRole(IntEnum):
    VIEWER = 0
    ANALYST = 1
    ADMIN = 2


def sentiment_from_score(score: Optional[float]) -> SentimentType:
    """Map a signed score in [-1, 1] onto the five-point scale."""
    if score is None:
        return SentimentType.NEUTRAL
    if score <= -0.6:
        return SentimentType.VERY_NEGATIVE
    if score < -0.2:
        return SentimentType.NEGATIVE
    if score <= 0.2:
        return SentimentType.NEUTRAL
    if score < 0.6:
        return SentimentType.POSITIVE
    return SentimentType.VERY_POSITIVE
