# ==============================================================================
# Tests for SingleFlight
# ==============================================================================
"""
Tests for the single-flight guard, in-process and backed by a Valkey lock.
"""

from tabpulse.utils.single_flight import SingleFlight

LOCK_KEY = "test:lock:job"


class TestInProcess:
    """Tests for a guard without a Valkey client."""

    def test_overlapping_hold_is_refused(self):
        guard = SingleFlight("job")
        with guard.hold() as outer:
            with guard.hold() as inner:
                assert outer is True
                assert inner is False
                assert guard.running is True
        assert guard.running is False

    def test_released_when_block_raises(self):
        guard = SingleFlight("job")
        try:
            with guard.hold():
                raise RuntimeError("boom")
        except RuntimeError:
            pass
        assert guard.running is False


class TestValkeyBacked:
    """Tests for guards sharing a Valkey lock, as separate processes do."""

    def test_second_guard_refused_while_held(self, fake_redis):
        first = SingleFlight("job", fake_redis, LOCK_KEY)
        second = SingleFlight("job", fake_redis, LOCK_KEY)

        with first.hold() as acquired:
            assert acquired is True
            assert second.running is True
            with second.hold() as other:
                assert other is False
            assert fake_redis.exists(LOCK_KEY) == 1

        assert fake_redis.exists(LOCK_KEY) == 0
        with second.hold() as acquired:
            assert acquired is True

    def test_lock_has_expiry(self, fake_redis):
        guard = SingleFlight("job", fake_redis, LOCK_KEY, timeout=30)
        with guard.hold():
            assert 0 < fake_redis.ttl(LOCK_KEY) <= 30

    def test_expired_lock_release_does_not_raise(self, fake_redis):
        guard = SingleFlight("job", fake_redis, LOCK_KEY)
        with guard.hold() as acquired:
            assert acquired
            fake_redis.delete(LOCK_KEY)

        assert guard.running is False
        with guard.hold() as acquired:
            assert acquired is True

    def test_different_keys_do_not_block(self, fake_redis):
        aggregation = SingleFlight("aggregation", fake_redis, "test:lock:aggregation")
        sync = SingleFlight("sync", fake_redis, "test:lock:sync")
        with aggregation.hold() as first, sync.hold() as second:
            assert first is True
            assert second is True
