"""In-process request metrics for the dashboard performance block."""

import time
from collections import deque
from datetime import date, datetime, timezone
from typing import Deque, Optional


class RequestMetrics:
    """Rolling response times and a per-UTC-day request counter.

    Only touched from the event loop, so no locking.
    """

    def __init__(self, window_size: int = 1000):
        self.started_at = time.monotonic()
        self._durations: Deque[float] = deque(maxlen=window_size)
        self._day: date = datetime.now(timezone.utc).date()
        self.requests_today = 0
        self.errors_today = 0

    def record(self, duration_ms: float, status_code: int, now: Optional[datetime] = None) -> None:
        today = (now or datetime.now(timezone.utc)).date()
        if today != self._day:
            self._day = today
            self.requests_today = 0
            self.errors_today = 0

        self._durations.append(duration_ms)
        self.requests_today += 1
        if status_code >= 500:
            self.errors_today += 1

    @property
    def avg_response_time_ms(self) -> float:
        if not self._durations:
            return 0.0
        return round(sum(self._durations) / len(self._durations), 2)

    @property
    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self.started_at, 1)
