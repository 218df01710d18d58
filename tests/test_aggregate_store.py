# ==============================================================================
# Tests for Valkey Storage Adapters
# ==============================================================================
"""
Tests for ValkeyAggregateStore, ValkeyMetadataProvider and
ValkeyBrowserStateProbe against fakeredis.
"""

from tabpulse.core.models import ActiveTab, IdleState, PageMetadata, PageVisit, TabAggregate
from tabpulse.services.anonymous_id import get_or_create_anonymous_id

T0 = 1_700_000_000_000

# ==============================================================================
# Helpers
# ==============================================================================


def _make_visit(tab_id: int = 1, offset_ms: int = 0, url: str = "https://example.com") -> PageVisit:
    started = T0 + offset_ms
    visit = PageVisit(
        id=PageVisit.make_id(tab_id, started),
        tab_id=tab_id,
        url=url,
        domain="example.com",
        started_at=started,
    )
    visit.complete(started + 10_000)
    return visit


# ==============================================================================
# Page visits
# ==============================================================================


class TestPageVisits:
    """Tests for page visit persistence."""

    def test_add_inserts_new_visits(self, store):
        visits = [_make_visit(1), _make_visit(2)]
        assert store.add_page_visits(visits) == 2
        assert [v.id for v in store.get_page_visits()] == [visits[0].id, visits[1].id]

    def test_add_never_overwrites(self, store):
        """A replayed visit with the same id keeps the stored copy."""
        original = _make_visit(1)
        store.add_page_visits([original])
        store.save_page_visits([original.model_copy(update={"synced": True})])

        replay = _make_visit(1)
        assert store.add_page_visits([replay]) == 0
        assert store.get_page_visits()[0].synced is True

    def test_save_overwrites(self, store):
        visit = _make_visit(1)
        store.add_page_visits([visit])
        visit.mark_synced(T0 + 5)
        store.save_page_visits([visit])
        assert store.get_page_visits()[0].synced_at == T0 + 5

    def test_delete(self, store):
        visits = [_make_visit(1), _make_visit(2)]
        store.add_page_visits(visits)
        assert store.delete_page_visits([visits[0].id]) == 1
        assert [v.id for v in store.get_page_visits()] == [visits[1].id]

    def test_unreadable_visit_skipped(self, store, fake_redis):
        store.add_page_visits([_make_visit(1)])
        fake_redis.hset("test:page_visits", "pv_bad", '{"id": "pv_bad"}')
        assert len(store.get_page_visits()) == 1


# ==============================================================================
# Tab aggregates and active visit
# ==============================================================================


class TestTabAggregates:
    """Tests for aggregates and the active visit pointer."""

    def test_save_and_read(self, store):
        aggregate = TabAggregate.create(3, T0)
        aggregate.update_activity("example.com", 0, "https://example.com", T0)
        store.save_tab_aggregates([aggregate])

        loaded = store.get_tab_aggregates()
        assert loaded == [aggregate]

    def test_save_replaces_by_tab_id(self, store):
        store.save_tab_aggregates([TabAggregate.create(3, T0)])
        updated = TabAggregate.create(3, T0)
        updated.page_count = 5
        store.save_tab_aggregates([updated])

        loaded = store.get_tab_aggregates()
        assert len(loaded) == 1
        assert loaded[0].page_count == 5

    def test_active_visit_pointer(self, store):
        assert store.get_active_visit() is None
        visit = PageVisit(
            id=PageVisit.make_id(1, T0), tab_id=1, url="https://example.com",
            domain="example.com", started_at=T0,
        )
        store.set_active_visit(visit)
        assert store.get_active_visit() == visit
        store.set_active_visit(None)
        assert store.get_active_visit() is None


class TestCommitAggregation:
    """Tests for the atomic end-of-pass write."""

    def test_commit_writes_all_parts(self, store):
        aggregate = TabAggregate.create(3, T0)
        visit = _make_visit(3)

        store.commit_aggregation([aggregate], visit, ["evt_1", "evt_2"])

        assert store.get_tab_aggregates() == [aggregate]
        assert store.get_active_visit() == visit
        assert store.get_applied_event_ids() == {"evt_1", "evt_2"}

    def test_commit_without_visit_clears_pointer(self, store):
        store.set_active_visit(_make_visit(1))
        store.commit_aggregation([], None, [])

        assert store.get_active_visit() is None
        assert store.get_applied_event_ids() == set()

    def test_clear_applied_ids(self, store):
        store.commit_aggregation([], None, ["evt_1", "evt_2"])

        assert store.clear_applied_event_ids(["evt_1", "evt_9"]) == 1
        assert store.clear_applied_event_ids([]) == 0
        assert store.get_applied_event_ids() == {"evt_2"}

    def test_clear_all_removes_applied_ids(self, store):
        store.commit_aggregation([], None, ["evt_1"])
        store.clear_all()
        assert store.get_applied_event_ids() == set()


class TestSingletons:
    """Tests for sync state, heartbeats and meta values."""

    def test_sync_state_merges_fields(self, store):
        store.save_sync_state({"lastSyncTime": T0, "lastSyncStatus": "success"})
        store.save_sync_state({"lastSyncStatus": "partial"})
        assert store.get_sync_state() == {"lastSyncTime": T0, "lastSyncStatus": "partial"}

    def test_heartbeats_round_trip(self, store):
        assert store.get_heartbeats() == []
        store.save_heartbeats([{"timestamp": T0}])
        assert store.get_heartbeats() == [{"timestamp": T0}]

    def test_anonymous_id_is_stable(self, store):
        first = get_or_create_anonymous_id(store)
        second = get_or_create_anonymous_id(store)
        assert first == second
        assert len(first) == 36

    def test_clear_all_only_touches_prefix(self, store, fake_redis):
        fake_redis.set("other:key", "keep")
        store.add_page_visits([_make_visit(1)])
        store.set_value("anonymous_client_id", "abc")

        assert store.clear_all() == 2
        assert store.get_page_visits() == []
        assert fake_redis.get("other:key") == "keep"


# ==============================================================================
# Metadata cache
# ==============================================================================


class TestMetadataProvider:
    """Tests for ValkeyMetadataProvider."""

    def test_put_and_get(self, metadata_provider):
        metadata = PageMetadata(title="Docs", has_code_editor=True)
        metadata_provider.put("https://example.com", metadata)
        assert metadata_provider.get_metadata("https://example.com") == metadata

    def test_get_many_skips_missing(self, metadata_provider):
        metadata_provider.put("https://a.example.com", PageMetadata(title="A"))
        result = metadata_provider.get_many(
            ["https://a.example.com", "https://b.example.com", "https://a.example.com", ""]
        )
        assert list(result) == ["https://a.example.com"]
        assert result["https://a.example.com"].title == "A"

    def test_entries_expire(self, metadata_provider, fake_redis):
        metadata_provider.put("https://example.com", PageMetadata(title="x"))
        key = next(iter(fake_redis.scan_iter("test:pagemeta:*")))
        assert 0 < fake_redis.ttl(key) <= 24 * 3600


# ==============================================================================
# Browser state probe
# ==============================================================================


class TestBrowserStateProbe:
    """Tests for ValkeyBrowserStateProbe."""

    def test_no_snapshot_is_idle(self, probe):
        assert probe.query_idle_state(60) == IdleState.IDLE
        assert probe.get_active_tab() is None
        assert probe.is_window_focused() is False

    def test_recent_input_is_active(self, probe, clock):
        probe.save_snapshot({"kind": "state", "lastInputAt": clock() - 5_000})
        assert probe.query_idle_state(60) == IdleState.ACTIVE

    def test_old_input_is_idle(self, probe, clock):
        probe.save_snapshot({"lastInputAt": clock() - 61_000})
        assert probe.query_idle_state(60) == IdleState.IDLE

    def test_locked_wins(self, probe, clock):
        probe.save_snapshot({"lastInputAt": clock(), "locked": True})
        assert probe.query_idle_state(60) == IdleState.LOCKED

    def test_reported_state_used_while_fresh(self, probe, clock):
        probe.save_snapshot({"idleState": "active"})
        assert probe.query_idle_state(60) == IdleState.ACTIVE
        clock.advance(60_000)
        assert probe.query_idle_state(60) == IdleState.IDLE

    def test_snapshot_merges_and_drops_kind(self, probe):
        probe.save_snapshot({"kind": "state", "windowFocused": True})
        snapshot = probe.save_snapshot({"activeTab": {"tabId": 4, "url": "https://example.com"}})

        assert "kind" not in snapshot
        assert snapshot["windowFocused"] is True
        assert probe.is_window_focused() is True
        assert probe.get_active_tab() == ActiveTab(tab_id=4, url="https://example.com")

    def test_null_active_tab_clears(self, probe):
        probe.save_snapshot({"activeTab": {"tabId": 4, "url": "https://example.com"}})
        probe.save_snapshot({"activeTab": None})
        assert probe.get_active_tab() is None
