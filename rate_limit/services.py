import math

from decision_engine.clock import utcnow

GLOBAL_ENDPOINT = "*"


class RateLimiter:
    """
    Fixed time-window counter per (IP, endpoint), disimpan di store.
    Limiter endpoint dan limiter global memakai class yang sama,
    hanya window dan batasnya yang berbeda.
    """

    def __init__(self, store, window_ms, max_requests, name="endpoint", clock=utcnow):
        self.store = store
        self.window_ms = window_ms
        self.max_requests = max_requests
        self.name = name
        self.clock = clock

    async def increment(self, ip, endpoint):
        """Count one request and return ``RateWindowHit(total_hits, reset_time)``."""
        return await self.store.upsert_rate_window(ip, endpoint, self.window_ms)

    async def is_exceeded(self, ip, endpoint, max_requests=None):
        window = await self.store.get_rate_window(ip, endpoint, self.window_ms)
        if window is None:
            return False
        return window.request_count > self._limit(max_requests)

    def exceeded(self, hit, max_requests=None):
        return hit.total_hits > self._limit(max_requests)

    def retry_after_seconds(self, hit):
        remaining_ms = (hit.reset_time - self.clock()).total_seconds() * 1000
        return max(1, math.ceil(remaining_ms / 1000))

    def _limit(self, max_requests):
        return self.max_requests if max_requests is None else max_requests

    def __repr__(self):
        return f"<RateLimiter {self.name} {self.max_requests}/{self.window_ms}ms>"
