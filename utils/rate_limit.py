"""
utils/rate_limit.py

Purpose: In-memory request rate limiting

- Fixed window per key (client IP + route)
- Used by public verification endpoints
- Single-process only: counters live in this process
- Idle keys are pruned by the scheduler cleanup job
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple


class RateLimiter:
    """
    Keeps request timestamps per key and refuses a request once
    `max_requests` were recorded within `window_seconds`.
    """

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._attempts: Dict[str, List[datetime]] = {}

    def _recent(self, key: str, now: datetime) -> List[datetime]:
        return [
            attempt_time for attempt_time in self._attempts.get(key, [])
            if (now - attempt_time).total_seconds() < self.window_seconds
        ]

    def check(self, key: str, now: Optional[datetime] = None) -> Tuple[bool, int]:
        """
        Records a request for key if allowed.

        Returns:
            (is_allowed, retry_after_seconds)
        """
        now = now or datetime.now()

        # Clean attempts outside the window
        attempts = self._recent(key, now)

        if len(attempts) >= self.max_requests:
            self._attempts[key] = attempts
            retry_after = self.window_seconds - (now - attempts[0]).total_seconds()
            return False, max(int(retry_after), 1)

        attempts.append(now)
        self._attempts[key] = attempts
        return True, 0

    def prune(self, now: Optional[datetime] = None) -> int:
        """
        Drops keys with no attempt left in the window.

        Returns:
            Number of keys removed
        """
        now = now or datetime.now()
        stale = [key for key in self._attempts if not self._recent(key, now)]
        for key in stale:
            del self._attempts[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._attempts)

    def reset(self):
        self._attempts.clear()


# Registry so every limiter can be cleared at once (tests, admin tooling)
_limiters: List[RateLimiter] = []


def get_rate_limiter(max_requests: int, window_seconds: int) -> RateLimiter:
    limiter = RateLimiter(max_requests, window_seconds)
    _limiters.append(limiter)
    return limiter


def prune_all_limiters() -> int:
    return sum(limiter.prune() for limiter in _limiters)


def reset_all_limiters():
    for limiter in _limiters:
        limiter.reset()
