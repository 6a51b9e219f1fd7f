from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta

from helpdesk.utils.time import utc_now


class LoginRateLimiter:
    """Sliding window of failed sign-ins per (client IP, e-mail) pair."""

    def __init__(self, max_attempts: int, window_seconds: int) -> None:
        self.max_attempts = max_attempts
        self.window = timedelta(seconds=window_seconds)
        self.failures: dict[str, deque[datetime]] = {}

    @staticmethod
    def key_for(ip: str | None, email: str) -> str:
        return f"{ip or 'unknown'}|{email}"

    def _recent(self, key: str, now: datetime) -> deque[datetime]:
        bucket = self.failures.setdefault(key, deque())
        while bucket and now - bucket[0] > self.window:
            bucket.popleft()
        return bucket

    def blocked(self, key: str, now: datetime | None = None) -> bool:
        return len(self._recent(key, now or utc_now())) >= self.max_attempts

    def record_failure(self, key: str, now: datetime | None = None) -> None:
        now = now or utc_now()
        self._recent(key, now).append(now)

    def reset(self, key: str) -> None:
        self.failures.pop(key, None)
