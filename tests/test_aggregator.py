# ==============================================================================
# Tests for Aggregator
# ==============================================================================
"""
Tests for the aggregation pass: draining the event log into visits and
aggregates, keeping events when persistence fails, single-flight behavior
and startup recovery of a visit left open.
"""

from unittest.mock import MagicMock

from tabpulse.core.models import PageMetadata
from tabpulse.infrastructure.aggregate_store import ValkeyAggregateStore
from tabpulse.infrastructure.event_log import ValkeyEventLog
from tabpulse.services.aggregator import Aggregator
from tabpulse.services.events import EventRecorder
from tabpulse.utils.single_flight import SingleFlight

T0 = 1_700_000_000_000
URL_A = "https://example.com/a"
URL_B = "https://news.example.org/b"

# ==============================================================================
# Helpers
# ==============================================================================


def _record_scenario(event_log) -> list:
    """Append tab 1's A (90s, one engaged heartbeat) then B (60s) then CLOSE."""
    recorder = EventRecorder(event_log, anonymous_client_id="client-1")
    events = [
        recorder.create_event("CREATE", 1, URL_A, timestamp=T0),
        recorder.create_event("ACTIVATE", 1, URL_A, timestamp=T0),
        recorder.create_event(
            "HEARTBEAT", 1, URL_A, timestamp=T0 + 30_000, idle_state="active", window_focused=True
        ),
        recorder.create_event("NAVIGATE", 1, URL_B, timestamp=T0 + 90_000),
        recorder.create_event("CLOSE", 1, "", timestamp=T0 + 150_000),
    ]
    for event in events:
        assert recorder.record(event)
    return events


# ==============================================================================
# process_pending
# ==============================================================================


class TestProcessPending:
    """Tests for Aggregator.process_pending()."""

    def test_empty_log_is_noop(self, event_log, store, clock):
        aggregator = Aggregator(event_log, store, clock=clock)
        result = aggregator.process_pending()

        assert result.success is True
        assert result.processed_count == 0
        assert store.get_sync_state() == {}

    def test_drains_log_into_store(self, event_log, store, clock):
        _record_scenario(event_log)
        aggregator = Aggregator(event_log, store, clock=clock)

        result = aggregator.process_pending()

        assert result.success is True
        assert result.processed_count == 5
        assert result.new_visits == 2
        assert result.touched_aggregates == 1
        assert event_log.count() == 0

        visits = store.get_page_visits()
        assert [v.url for v in visits] == [URL_A, URL_B]
        assert visits[0].active_duration_ms == 30_000

        aggregates = store.get_tab_aggregates()
        assert len(aggregates) == 1
        assert aggregates[0].page_count == 2
        assert aggregates[0].total_active_duration_ms == 30_000
        assert aggregates[0].is_open is False

        assert store.get_active_visit() is None
        assert store.get_sync_state()["lastAggregationTime"] == T0

    def test_active_visit_carried_between_passes(self, event_log, store, clock):
        recorder = EventRecorder(event_log)
        aggregator = Aggregator(event_log, store, clock=clock)

        recorder.record_signal("ACTIVATE", 1, URL_A, timestamp=T0)
        aggregator.process_pending()
        assert store.get_active_visit().url == URL_A

        recorder.record_signal("ACTIVATE", 2, URL_B, timestamp=T0 + 40_000)
        aggregator.process_pending()

        visits = store.get_page_visits()
        assert len(visits) == 1
        assert visits[0].duration_ms == 40_000
        assert store.get_active_visit().tab_id == 2

    def test_aggregate_durations_accumulate_across_passes(self, event_log, store, clock):
        recorder = EventRecorder(event_log)
        aggregator = Aggregator(event_log, store, clock=clock)

        recorder.record_signal("ACTIVATE", 1, URL_A, timestamp=T0)
        recorder.record_signal("HEARTBEAT", 1, URL_A, timestamp=T0 + 30_000, idle_state="active")
        aggregator.process_pending()
        recorder.record_signal("HEARTBEAT", 1, URL_A, timestamp=T0 + 60_000, idle_state="active")
        aggregator.process_pending()

        aggregate = store.get_tab_aggregates()[0]
        assert aggregate.total_active_duration_ms == 60_000
        assert aggregate.domain_durations == {"example.com": 60_000}
        assert aggregate.page_count == 1

    def test_malformed_events_reported_and_deleted(self, event_log, store, clock, fake_redis):
        _record_scenario(event_log)
        fake_redis.hset("test:events", "evt_broken", "{not json")
        aggregator = Aggregator(event_log, store, clock=clock)

        result = aggregator.process_pending()

        assert result.success is True
        assert result.error_count == 1
        assert result.processed_count == 6
        assert event_log.count() == 0

    def test_persist_failure_keeps_events(self, event_log, clock):
        events = _record_scenario(event_log)
        store = MagicMock()
        store.get_active_visit.return_value = None
        store.get_tab_aggregates.return_value = []
        store.add_page_visits.side_effect = RuntimeError("valkey down")

        result = Aggregator(event_log, store, clock=clock).process_pending()

        assert result.success is False
        assert "valkey down" in result.error
        assert event_log.count() == len(events)
        store.commit_aggregation.assert_not_called()

    def test_uses_prefetched_metadata(self, event_log, store, metadata_provider, clock):
        metadata_provider.put(URL_A, PageMetadata(title="Editor", has_code_editor=True))
        recorder = EventRecorder(event_log)
        recorder.record_signal("ACTIVATE", 1, URL_A, timestamp=T0)
        recorder.record_signal("CLOSE", 1, "", timestamp=T0 + 120_000)

        Aggregator(event_log, store, metadata_provider, clock=clock).process_pending()

        visit = store.get_page_visits()[0]
        assert visit.title == "Editor"
        assert visit.category == "work_coding"

    def test_metadata_failure_degrades(self, event_log, store, clock):
        provider = MagicMock()
        provider.get_many.side_effect = RuntimeError("boom")
        recorder = EventRecorder(event_log)
        recorder.record_signal("ACTIVATE", 1, "https://github.com/o/r/pull/1", timestamp=T0)

        result = Aggregator(event_log, store, provider, clock=clock).process_pending()

        assert result.success is True
        assert store.get_active_visit().category == "work_code_review"

    def test_single_flight(self, event_log, store, clock):
        aggregator = Aggregator(event_log, store, clock=clock)
        with aggregator._guard.hold() as acquired:
            assert acquired
            assert aggregator.running is True
            result = aggregator.process_pending()

        assert result.success is False
        assert result.error == "already aggregating"
        assert aggregator.running is False

    def test_replay_does_not_duplicate_visits(self, event_log, store, clock):
        """Re-processing the same events inserts no second copy of a visit."""
        events = _record_scenario(event_log)
        aggregator = Aggregator(event_log, store, clock=clock)
        aggregator.process_pending()

        for event in events:
            event_log.append(event)
        aggregator.process_pending()

        assert len(store.get_page_visits()) == 2


# ==============================================================================
# Interrupted passes and concurrent processes
# ==============================================================================


def _make_shared_guard(fake_redis) -> SingleFlight:
    return SingleFlight("aggregation", fake_redis, "test:lock:aggregation")


class TestInterruptedPass:
    """Tests for a pass whose event delete failed after its commit."""

    def test_rerun_does_not_recount(self, event_log, store, clock):
        """Events already folded into the aggregates are skipped, then deleted."""
        _record_scenario(event_log)
        aggregator = Aggregator(event_log, store, clock=clock)
        delete_many = event_log.delete_many
        event_log.delete_many = MagicMock(side_effect=RuntimeError("connection lost"))

        first = aggregator.process_pending()
        event_log.delete_many = delete_many
        second = aggregator.process_pending()

        assert first.success is False
        assert second.success is True
        assert second.processed_count == 5
        assert second.new_visits == 0
        assert event_log.count() == 0
        assert store.get_applied_event_ids() == set()

        assert len(store.get_page_visits()) == 2
        aggregate = store.get_tab_aggregates()[0]
        assert aggregate.page_count == 2
        assert aggregate.total_active_duration_ms == 30_000
        assert aggregate.domain_durations == {"example.com": 30_000, "news.example.org": 0}

    def test_new_events_after_interruption_are_folded(self, event_log, store, clock):
        _record_scenario(event_log)
        aggregator = Aggregator(event_log, store, clock=clock)
        delete_many = event_log.delete_many
        event_log.delete_many = MagicMock(side_effect=RuntimeError("connection lost"))
        aggregator.process_pending()
        event_log.delete_many = delete_many

        EventRecorder(event_log).record_signal("ACTIVATE", 2, URL_B, timestamp=T0 + 200_000)
        result = aggregator.process_pending()

        assert result.processed_count == 6
        aggregates = {agg.tab_id: agg for agg in store.get_tab_aggregates()}
        assert aggregates[1].page_count == 2
        assert aggregates[2].page_count == 1
        assert store.get_active_visit().tab_id == 2

    def test_commit_records_applied_ids(self, event_log, store, clock):
        events = _record_scenario(event_log)
        event_log.delete_many = MagicMock(side_effect=RuntimeError("connection lost"))

        Aggregator(event_log, store, clock=clock).process_pending()

        assert store.get_applied_event_ids() == {event.id for event in events}


class TestConcurrentProcesses:
    """Tests for aggregators in separate processes sharing one Valkey."""

    def test_pass_started_elsewhere_is_skipped(self, event_log, store, clock, fake_redis):
        """A second process reaching the log mid-pass skips instead of folding again."""
        _record_scenario(event_log)
        other = Aggregator(
            ValkeyEventLog(fake_redis, prefix="test"),
            ValkeyAggregateStore(fake_redis, prefix="test"),
            clock=clock,
            guard=_make_shared_guard(fake_redis),
        )
        aggregator = Aggregator(event_log, store, clock=clock, guard=_make_shared_guard(fake_redis))

        other_results = []
        get_all = event_log.get_all

        def get_all_while_other_runs():
            other_results.append(other.process_pending())
            return get_all()

        event_log.get_all = get_all_while_other_runs
        result = aggregator.process_pending()

        assert other_results[0].success is False
        assert other_results[0].error == "already aggregating"
        assert result.processed_count == 5
        aggregate = store.get_tab_aggregates()[0]
        assert aggregate.total_active_duration_ms == 30_000
        assert aggregate.page_count == 2

    def test_lock_released_after_pass(self, event_log, store, clock, fake_redis):
        aggregator = Aggregator(event_log, store, clock=clock, guard=_make_shared_guard(fake_redis))
        other = Aggregator(event_log, store, clock=clock, guard=_make_shared_guard(fake_redis))
        _record_scenario(event_log)

        assert aggregator.process_pending().success is True
        assert other.running is False
        assert other.process_pending().success is True
        assert fake_redis.exists("test:lock:aggregation") == 0


# ==============================================================================
# recover_active_visit
# ==============================================================================


class TestRecoverActiveVisit:
    """Tests for startup recovery."""

    def test_no_open_visit(self, event_log, store, clock):
        assert Aggregator(event_log, store, clock=clock).recover_active_visit() is None

    def test_closes_leftover_visit(self, event_log, store, clock):
        EventRecorder(event_log).record_signal("ACTIVATE", 1, URL_A, timestamp=T0)
        aggregator = Aggregator(event_log, store, clock=clock)
        aggregator.process_pending()

        clock.advance(300_000)
        closed = aggregator.recover_active_visit()

        assert closed.duration_ms == 300_000
        assert store.get_active_visit() is None
        assert [v.id for v in store.get_page_visits()] == [closed.id]

    def test_explicit_now(self, event_log, store, clock):
        EventRecorder(event_log).record_signal("ACTIVATE", 1, URL_A, timestamp=T0)
        aggregator = Aggregator(event_log, store, clock=clock)
        aggregator.process_pending()

        closed = aggregator.recover_active_visit(now=T0 + 5_000)
        assert closed.ended_at == T0 + 5_000

    def test_result_serialization(self, event_log, store, clock):
        _record_scenario(event_log)
        data = Aggregator(event_log, store, clock=clock).process_pending().to_dict()
        assert data["success"] is True
        assert data["processedCount"] == 5
        assert data["newVisits"] == 2
