# ==============================================================================
# Tests for ValkeyEventLog
# ==============================================================================
"""
Tests for the Valkey-backed raw event log: append, ordered reads, batch
deletion and age-based lookups.
"""

import json
from unittest.mock import MagicMock

from tabpulse.services.events import EventRecorder
from tabpulse.utils.clock import MS_PER_HOUR

T0 = 1_700_000_000_000

# ==============================================================================
# Helpers
# ==============================================================================


def _make_event(event_type: str, tab_id: int, offset_ms: int, url: str = "https://example.com"):
    recorder = EventRecorder(MagicMock(), anonymous_client_id="client-1")
    return recorder.create_event(event_type, tab_id, url, timestamp=T0 + offset_ms)


# ==============================================================================
# Append and read
# ==============================================================================


class TestAppendAndRead:
    """Tests for append() and get_all()."""

    def test_empty_log(self, event_log):
        assert event_log.get_all() == []
        assert event_log.count() == 0

    def test_append_round_trip(self, event_log):
        event = _make_event("ACTIVATE", 1, 0)
        event_log.append(event)

        records = event_log.get_all()
        assert len(records) == 1
        assert records[0]["id"] == event.id
        assert records[0]["tabId"] == 1
        assert records[0]["type"] == "ACTIVATE"
        assert records[0]["anonymousClientId"] == "client-1"

    def test_records_sorted_by_timestamp(self, event_log):
        late = _make_event("NAVIGATE", 1, 5_000)
        early = _make_event("ACTIVATE", 1, 0)
        event_log.append(late)
        event_log.append(early)

        assert [r["id"] for r in event_log.get_all()] == [early.id, late.id]

    def test_invalid_json_comes_back_as_id_only(self, event_log, fake_redis):
        fake_redis.hset("test:events", "evt_broken", "{not json")
        records = event_log.get_all()
        assert records == [{"id": "evt_broken"}]

    def test_keys_use_prefix(self, event_log, fake_redis):
        event_log.append(_make_event("ACTIVATE", 1, 0))
        assert fake_redis.exists("test:events") == 1
        assert fake_redis.exists("test:events:by_ts") == 1
        stored = json.loads(next(iter(fake_redis.hgetall("test:events").values())))
        assert stored["timestamp"] == T0


# ==============================================================================
# Delete and expiry
# ==============================================================================


class TestDeleteAndExpiry:
    """Tests for delete_many(), get_older_than() and clear()."""

    def test_delete_many(self, event_log):
        events = [_make_event("ACTIVATE", i, i) for i in range(3)]
        for event in events:
            event_log.append(event)

        deleted = event_log.delete_many([events[0].id, events[2].id, "evt_missing"])

        assert deleted == 2
        assert [r["id"] for r in event_log.get_all()] == [events[1].id]

    def test_delete_nothing(self, event_log):
        assert event_log.delete_many([]) == 0

    def test_get_older_than(self, event_log):
        old = _make_event("ACTIVATE", 1, 0)
        fresh = _make_event("ACTIVATE", 2, 3 * MS_PER_HOUR)
        event_log.append(old)
        event_log.append(fresh)

        now = T0 + 4 * MS_PER_HOUR
        assert event_log.get_older_than(2, now=now) == [old.id]
        assert event_log.get_older_than(10, now=now) == []

    def test_clear(self, event_log):
        event_log.append(_make_event("ACTIVATE", 1, 0))
        event_log.append(_make_event("ACTIVATE", 2, 1))
        assert event_log.clear() == 2
        assert event_log.count() == 0
        assert event_log.get_older_than(0, now=T0 + 10) == []
