"""Per-key cooldown rate limiting for expensive endpoints."""

from datetime import datetime
from typing import Tuple
import threading

from cachetools import TTLCache


class RateLimiter:
    """
    Cooldown rate limiter keyed by an arbitrary string (e.g. league id).

    Each key may be acquired once per ``cooldown_seconds``. Entries expire
    from the underlying TTL cache when their cooldown ends.
    """

    def __init__(self, cooldown_seconds: int = 30, maxsize: int = 10000):
        """
        Initialize rate limiter.

        Args:
            cooldown_seconds: Minimum seconds between allowed requests per key
            maxsize: Maximum number of keys tracked at once
        """
        self.cooldown_seconds = cooldown_seconds
        self._last_request: TTLCache = TTLCache(maxsize=maxsize, ttl=max(cooldown_seconds, 1))
        self._lock = threading.Lock()

    def try_acquire(self, key: str) -> Tuple[bool, int]:
        """
        Try to acquire rate limit for a key.

        Returns:
            Tuple of (allowed: bool, wait_seconds: int)
            - If allowed, wait_seconds is 0
            - If not allowed, wait_seconds is how long to wait
        """
        if self.cooldown_seconds <= 0:
            return True, 0

        with self._lock:
            now = datetime.now()
            last = self._last_request.get(key)

            if last is None:
                self._last_request[key] = now
                return True, 0

            elapsed = (now - last).total_seconds()

            if elapsed >= self.cooldown_seconds:
                self._last_request[key] = now
                return True, 0

            wait_seconds = max(1, int(self.cooldown_seconds - elapsed))
            return False, wait_seconds

    def release(self, key: str) -> None:
        """Forget a key so its next request is allowed."""
        with self._lock:
            self._last_request.pop(key, None)

    def reset(self) -> None:
        """Reset the rate limiter (for testing)."""
        with self._lock:
            self._last_request.clear()
