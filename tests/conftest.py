from datetime import datetime, timedelta, timezone

import pytest

from decision_engine.config import ShieldConfig
from decision_engine.exceptions import StoreUnavailable
from decision_engine.pipeline import DefensePipeline
from decision_engine.store import InMemoryStore

BROWSER_HEADERS = {
    "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/124.0",
    "accept": "text/html,application/json",
    "accept_language": "es-ES,es;q=0.9",
}


class FakeClock:
    """Wall clock (aware datetimes) that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self, start=1000.0):
        self.value = start

    def __call__(self):
        return self.value

    def advance(self, seconds):
        self.value += seconds


class FailingStore(InMemoryStore):
    """Every call fails like an unreachable database."""

    def _fail(self, operation):
        raise StoreUnavailable(operation, "database is locked")

    async def get_reputation(self, ip):
        self._fail("get_reputation")

    async def upsert_reputation(self, ip, reason, duration_hours=None, permanent=False):
        self._fail("upsert_reputation")

    async def get_rate_window(self, ip, endpoint, window_ms):
        self._fail("get_rate_window")

    async def upsert_rate_window(self, ip, endpoint, window_ms):
        self._fail("upsert_rate_window")

    async def append_security_event(self, event):
        self._fail("append_security_event")

    async def count_recent_events(self, ip, event_type, since_hours):
        self._fail("count_recent_events")


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def config():
    return ShieldConfig()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def make_pipeline(clock, monotonic, sleep):
    def factory(store, config=None, **kwargs):
        return DefensePipeline(
            config or ShieldConfig(),
            store,
            sleep=sleep,
            clock=clock,
            monotonic=monotonic,
            **kwargs,
        )
    return factory


@pytest.fixture
def pipeline(make_pipeline, store, config):
    return make_pipeline(store, config)
