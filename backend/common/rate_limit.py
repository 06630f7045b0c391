"""
Attempt limiting backed by the Django cache (Redis in deployment).

Used to throttle trip-start code guesses per (user, booking):
    - `max_attempts` failures inside `window_seconds` trigger a block
    - a block lasts `block_seconds` and rejects every attempt
"""

import logging
import time

from django.conf import settings
from django.core.cache import cache as default_cache

logger = logging.getLogger(__name__)


class RateLimitExceeded(Exception):
    """Raised when a key is currently blocked."""

    def __init__(self, retry_after: int):
        super().__init__(f"Too many attempts. Try again in {retry_after} seconds.")
        self.retry_after = retry_after


class CacheRateLimiter:
    """Sliding-count limiter keyed by an arbitrary string."""

    def __init__(self, max_attempts: int, window_seconds: int, block_seconds: int,
                 cache=None, prefix: str = "ratelimit"):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.block_seconds = block_seconds
        self.cache = cache or default_cache
        self.prefix = prefix

    @classmethod
    def for_trip_codes(cls, cache=None):
        conf = settings.RIDESHARE
        return cls(
            max_attempts=conf["OTP_MAX_ATTEMPTS"],
            window_seconds=conf["OTP_WINDOW_SECONDS"],
            block_seconds=conf["OTP_BLOCK_SECONDS"],
            cache=cache,
            prefix="otp",
        )

    def _count_key(self, key):
        return f"{self.prefix}:count:{key}"

    def _block_key(self, key):
        return f"{self.prefix}:block:{key}"

    def check(self, key: str) -> None:
        """Raise RateLimitExceeded while `key` is blocked."""
        blocked_until = self.cache.get(self._block_key(key))
        if blocked_until is None:
            return
        retry_after = int(blocked_until - time.time())
        if retry_after > 0:
            raise RateLimitExceeded(retry_after)

    def hit(self, key: str) -> int:
        """Record a failed attempt; returns the attempt count in the current window."""
        count_key = self._count_key(key)
        if self.cache.add(count_key, 1, timeout=self.window_seconds):
            count = 1
        else:
            try:
                count = self.cache.incr(count_key)
            except ValueError:
                # Window expired between add() and incr()
                self.cache.set(count_key, 1, timeout=self.window_seconds)
                count = 1

        if count >= self.max_attempts:
            self.cache.set(self._block_key(key), time.time() + self.block_seconds, timeout=self.block_seconds)
            self.cache.delete(count_key)
            logger.warning("Rate limit block applied to %s:%s", self.prefix, key)
        return count

    def reset(self, key: str) -> None:
        self.cache.delete_many([self._count_key(key), self._block_key(key)])
