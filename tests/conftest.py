# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- A clean fakeredis instance per test (automatic flush)
- Valkey-backed event log, aggregate store, metadata cache and browser state
  probe, all bound to the fake client under the "test" prefix
- A controllable millisecond clock
"""

import fakeredis
import pytest

from tabpulse.infrastructure.aggregate_store import ValkeyAggregateStore
from tabpulse.infrastructure.browser_state import ValkeyBrowserStateProbe
from tabpulse.infrastructure.event_log import ValkeyEventLog
from tabpulse.infrastructure.metadata import ValkeyMetadataProvider

T0 = 1_700_000_000_000


class FakeClock:
    """Callable epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real Valkey client.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def clock():
    """A FakeClock starting at T0."""
    return FakeClock()


@pytest.fixture()
def event_log(fake_redis):
    return ValkeyEventLog(fake_redis, prefix="test")


@pytest.fixture()
def store(fake_redis):
    return ValkeyAggregateStore(fake_redis, prefix="test")


@pytest.fixture()
def metadata_provider(fake_redis):
    return ValkeyMetadataProvider(fake_redis, prefix="test", ttl_hours=24)


@pytest.fixture()
def probe(fake_redis, clock):
    return ValkeyBrowserStateProbe(fake_redis, prefix="test", clock=clock)
