# ==============================================================================
# Cleanup Service
# ==============================================================================
"""
Bounds local storage growth.

Two independent purges:
- Raw events older than raw_event_max_age_hours are expired unprocessed
  (they can only be that old if aggregation has been failing for days).
- Synced page visits and closed tab aggregates whose syncedAt is older than
  the retention window are deleted; they were kept only for local display.

Records that are pending or failed are never purged.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from tabpulse.base.aggregate_store import AggregateStore
from tabpulse.base.event_log import EventLog
from tabpulse.utils.clock import MS_PER_DAY, MS_PER_HOUR, now_ms

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    """Counts removed by one cleanup run."""

    expired_events: int = 0
    purged_visits: int = 0
    purged_aggregates: int = 0

    def to_dict(self) -> dict:
        return {
            "expiredEvents": self.expired_events,
            "purgedVisits": self.purged_visits,
            "purgedAggregates": self.purged_aggregates,
        }


class CleanupService:
    """Periodic purge of expired raw events and old synced records."""

    def __init__(
        self,
        event_log: EventLog,
        store: AggregateStore,
        retention_days: int = 30,
        raw_event_max_age_hours: int = 168,
        interval_hours: int = 24,
        clock: Callable[[], int] = now_ms,
    ):
        self._event_log = event_log
        self._store = store
        self._retention_days = retention_days
        self._raw_event_max_age_hours = raw_event_max_age_hours
        self._interval_hours = interval_hours
        self._clock = clock

    def expire_raw_events(self) -> int:
        """Delete raw events older than the max age. Returns count deleted."""
        expired_ids = self._event_log.get_older_than(self._raw_event_max_age_hours, now=self._clock())
        if not expired_ids:
            return 0
        deleted = self._event_log.delete_many(expired_ids)
        logger.warning("Expired %d unprocessed raw events", deleted)
        return deleted

    def purge_synced(self) -> tuple[int, int]:
        """
        Delete synced records older than the retention window.

        Open tab aggregates are kept even when synced, since later events
        for the tab still merge into them.

        Returns:
            (visits deleted, aggregates deleted)
        """
        cutoff = self._clock() - self._retention_days * MS_PER_DAY

        visit_ids = [
            visit.id
            for visit in self._store.get_page_visits()
            if visit.synced and visit.synced_at is not None and visit.synced_at < cutoff
        ]
        tab_ids = [
            agg.tab_id
            for agg in self._store.get_tab_aggregates()
            if agg.synced
            and not agg.is_open
            and agg.synced_at is not None
            and agg.synced_at < cutoff
        ]

        purged_visits = self._store.delete_page_visits(visit_ids) if visit_ids else 0
        purged_aggregates = self._store.delete_tab_aggregates(tab_ids) if tab_ids else 0
        return purged_visits, purged_aggregates

    def run(self) -> CleanupResult:
        """Run both purges and record lastCleanupTime."""
        start = time.monotonic()

        result = CleanupResult(expired_events=self.expire_raw_events())
        result.purged_visits, result.purged_aggregates = self.purge_synced()
        self._store.save_sync_state({"lastCleanupTime": self._clock()})

        logger.info(
            "Cleanup complete: %d events expired, %d visits and %d aggregates purged in %.1fms",
            result.expired_events,
            result.purged_visits,
            result.purged_aggregates,
            (time.monotonic() - start) * 1000,
        )
        return result

    def is_due(self) -> bool:
        last = self._store.get_sync_state().get("lastCleanupTime")
        if not last:
            return True
        return self._clock() - int(last) >= self._interval_hours * MS_PER_HOUR

    def run_if_due(self) -> CleanupResult | None:
        """Run cleanup when the interval has elapsed since the last run."""
        if not self.is_due():
            return None
        return self.run()
