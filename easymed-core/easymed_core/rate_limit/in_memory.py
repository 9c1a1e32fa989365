"""
Fixed Window Rate Limiter
=========================
Store-backed fixed window limiter, lazily reset on access.
"""

import time
from typing import Callable, Optional

from ..storage import KeyValueStore
from .models import RateLimitInfo, RateWindow


class FixedWindowLimiter:
    """
    Fixed window counter per scope key.

    Windows are aligned to multiples of ``window`` seconds and roll forward
    on the next access; nothing runs in the background.
    """

    def __init__(
        self,
        store: KeyValueStore,
        name: str,
        rate: int = 100,
        window: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            store: Backing key-value store
            name: Limiter name used in storage keys
            rate: Number of requests allowed per window
            window: Window size in seconds
        """
        self.store = store
        self.name = name
        self.rate = rate
        self.window = window
        self._clock = clock

    def get_key_pattern(self, scope_key: str) -> str:
        """Generate a rate limit key."""
        return f"ratelimit:{self.name}:{scope_key}"

    def _current(self, bucket: Optional[RateWindow], window_start: int) -> RateWindow:
        # Reset if new window
        if bucket is None or bucket.window_start < window_start:
            return RateWindow(window_start=window_start, count=0)
        return bucket

    def consume(self, scope_key: str) -> RateLimitInfo:
        """
        Count one request against ``scope_key``.

        Returns:
            RateLimitInfo with decision and remaining quota
        """
        now = self._clock()
        window_start = int(now // self.window) * self.window
        reset_at = window_start + self.window

        def _apply(bucket: Optional[RateWindow]):
            current = self._current(bucket, window_start)
            if current.count >= self.rate:
                return current, RateLimitInfo(
                    allowed=False,
                    remaining=0,
                    limit=self.rate,
                    reset_at=reset_at,
                    retry_after=max(1, int(reset_at - now)),
                )
            updated = RateWindow(window_start=window_start, count=current.count + 1)
            return updated, RateLimitInfo(
                allowed=True,
                remaining=self.rate - updated.count,
                limit=self.rate,
                reset_at=reset_at,
            )

        return self.store.update(self.get_key_pattern(scope_key), _apply, ttl=self.window)

    def peek(self, scope_key: str) -> RateLimitInfo:
        """Current quota for ``scope_key`` without consuming."""
        now = self._clock()
        window_start = int(now // self.window) * self.window
        reset_at = window_start + self.window
        current = self._current(self.store.get(self.get_key_pattern(scope_key)), window_start)
        allowed = current.count < self.rate
        return RateLimitInfo(
            allowed=allowed,
            remaining=max(0, self.rate - current.count),
            limit=self.rate,
            reset_at=reset_at,
            retry_after=None if allowed else max(1, int(reset_at - now)),
        )

    def reset(self, scope_key: str) -> None:
        self.store.delete(self.get_key_pattern(scope_key))
