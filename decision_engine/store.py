"""
Persistence contract used by the defence pipeline.

``ShieldStore`` is the minimal async interface the pipeline talks to;
``DjangoStore`` (see ``django_store.py``) is the real backend and
``InMemoryStore`` the swap-in double for tests and local runs.

Every mutating call must be atomic per key: the next value is computed by
the store, never by a read-then-write in the caller.
"""

import asyncio
import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from security_events.events import SecurityEvent

from .clock import utcnow


@dataclass
class ReputationRecord:
    ip: str
    reason: str = ""
    blocked_until: Optional[datetime] = None
    permanent: bool = False
    blocked_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_blocking(self, now):
        if self.permanent:
            return True
        return self.blocked_until is not None and self.blocked_until > now


@dataclass
class RateWindow:
    ip: str
    endpoint: str
    window_start: datetime
    request_count: int
    last_request: datetime

    def is_current(self, now, window_ms):
        return now - self.window_start < timedelta(milliseconds=window_ms)


@dataclass(frozen=True)
class RateWindowHit:
    total_hits: int
    reset_time: datetime


class ShieldStore:
    async def get_reputation(self, ip) -> Optional[ReputationRecord]:
        raise NotImplementedError

    async def upsert_reputation(self, ip, reason, duration_hours=None, permanent=False) -> ReputationRecord:
        """Create or update the block record for ``ip``.

        ``blocked_count`` becomes previous + 1, ``created_at`` is kept and
        ``blocked_until`` is now + ``duration_hours`` (None when not given).
        A permanent record stays permanent.
        """
        raise NotImplementedError

    async def release_reputation(self, ip) -> bool:
        """Lift an active block without deleting the record."""
        raise NotImplementedError

    async def get_rate_window(self, ip, endpoint, window_ms) -> Optional[RateWindow]:
        """Return the current window for (ip, endpoint), or None."""
        raise NotImplementedError

    async def upsert_rate_window(self, ip, endpoint, window_ms) -> RateWindowHit:
        """Count one request; start a fresh window when the old one expired."""
        raise NotImplementedError

    async def append_security_event(self, event: SecurityEvent) -> None:
        raise NotImplementedError

    async def count_recent_events(self, ip, event_type, since_hours) -> int:
        raise NotImplementedError


class InMemoryStore(ShieldStore):
    """Process-local store. One asyncio lock serialises every mutation."""

    def __init__(self, clock=utcnow):
        self.clock = clock
        self.reputations = {}
        self.rate_windows = {}
        self.events = []
        self._lock = asyncio.Lock()

    async def get_reputation(self, ip):
        record = self.reputations.get(ip)
        return dataclasses.replace(record) if record else None

    async def upsert_reputation(self, ip, reason, duration_hours=None, permanent=False):
        async with self._lock:
            now = self.clock()
            previous = self.reputations.get(ip)
            blocked_until = None
            if duration_hours is not None:
                blocked_until = now + timedelta(hours=duration_hours)
            record = ReputationRecord(
                ip=ip,
                reason=reason,
                blocked_until=blocked_until,
                permanent=permanent or bool(previous and previous.permanent),
                blocked_count=(previous.blocked_count if previous else 0) + 1,
                created_at=previous.created_at if previous else now,
                updated_at=now,
            )
            self.reputations[ip] = record
            return dataclasses.replace(record)

    async def release_reputation(self, ip):
        async with self._lock:
            record = self.reputations.get(ip)
            if record is None:
                return False
            record.permanent = False
            record.blocked_until = None
            record.updated_at = self.clock()
            return True

    async def get_rate_window(self, ip, endpoint, window_ms):
        window = self.rate_windows.get((ip, endpoint))
        if window is None or not window.is_current(self.clock(), window_ms):
            return None
        return dataclasses.replace(window)

    async def upsert_rate_window(self, ip, endpoint, window_ms):
        async with self._lock:
            now = self.clock()
            key = (ip, endpoint)
            window = self.rate_windows.get(key)
            if window is not None and window.is_current(now, window_ms):
                window.request_count += 1
                window.last_request = now
            else:
                window = RateWindow(ip, endpoint, window_start=now, request_count=1, last_request=now)
                self.rate_windows[key] = window
            return RateWindowHit(
                total_hits=window.request_count,
                reset_time=window.window_start + timedelta(milliseconds=window_ms),
            )

    async def append_security_event(self, event):
        async with self._lock:
            if event.created_at is None:
                event = dataclasses.replace(event, created_at=self.clock())
            self.events.append(event)

    async def count_recent_events(self, ip, event_type, since_hours):
        since = self.clock() - timedelta(hours=since_hours)
        return sum(
            1 for event in self.events
            if event.ip == ip and event.event_type == event_type and event.created_at >= since
        )
