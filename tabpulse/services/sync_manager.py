# ==============================================================================
# Sync Manager
# ==============================================================================
"""
Uploads not-yet-synced page visits and tab aggregates to the sync API.

Each record type is split into chunks of at most chunk_size records and
every chunk is its own request. A failed chunk marks only its own records
failed; they are picked up again on the next cycle because the unsynced set
is always re-derived from storage (syncStatus pending or failed), so an
interrupted sync needs no resume bookkeeping.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from tabpulse.base.aggregate_store import AggregateStore
from tabpulse.base.collaborators import SyncApi
from tabpulse.core.errors import SyncApiError
from tabpulse.core.models import PageVisit, SyncStatus, TabAggregate
from tabpulse.core.urls import is_internal_url, is_trackable_url
from tabpulse.utils.clock import now_ms
from tabpulse.utils.single_flight import SingleFlight

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1000

UNSYNCED_STATUSES = (SyncStatus.PENDING, SyncStatus.FAILED)


@dataclass
class SyncResult:
    """Outcome of one sync cycle."""

    success: bool
    synced: int = 0
    failed: int = 0
    error: str | None = None
    message: str | None = None

    def to_dict(self) -> dict:
        result = {"success": self.success, "synced": self.synced, "failed": self.failed}
        if self.error:
            result["error"] = self.error
        if self.message:
            result["message"] = self.message
        return result


def chunked(records: list, size: int) -> list[list]:
    """Split records into consecutive chunks of at most size."""
    size = max(size, 1)
    return [records[i : i + size] for i in range(0, len(records), size)]


def sync_status_for(synced: int, failed: int) -> str:
    """Overall cycle status: success, partial or failed."""
    if failed == 0:
        return "success"
    if synced == 0:
        return "failed"
    return "partial"


class SyncManager:
    """Batched, partial-failure-tolerant upload of aggregated records."""

    def __init__(
        self,
        store: AggregateStore,
        api: SyncApi,
        aggregator=None,
        cleanup=None,
        client_id_provider: Callable[[], str] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        is_authenticated: Callable[[], bool] | None = None,
        clock: Callable[[], int] = now_ms,
        guard: SingleFlight | None = None,
    ):
        """
        Args:
            store: Aggregated storage holding visits and aggregates
            api: Remote sync API
            aggregator: Run one aggregation pass before each sync (optional)
            cleanup: CleanupService run after each sync when due (optional)
            client_id_provider: Returns the anonymous client id for uploads
            chunk_size: Maximum records per upload request
            is_authenticated: Returns True when uploads are allowed
            clock: Source of epoch-millisecond timestamps
            guard: Single-flight guard. If None, an in-process guard is used.
        """
        self._store = store
        self._api = api
        self._aggregator = aggregator
        self._cleanup = cleanup
        self._client_id_provider = client_id_provider or (lambda: "")
        self._chunk_size = chunk_size
        self._is_authenticated = is_authenticated or (lambda: False)
        self._clock = clock
        self._guard = guard or SingleFlight("sync")

    @property
    def syncing(self) -> bool:
        return self._guard.running

    def sync_to_backend(self, force: bool = False) -> SyncResult:
        """
        Upload every pending or failed record.

        Args:
            force: Sync even when not authenticated

        Returns:
            SyncResult; success is True only when no chunk failed
        """
        if not force and not self._is_authenticated():
            logger.debug("Skipping sync, not authenticated")
            return SyncResult(success=False, error="not authenticated")

        with self._guard.hold() as acquired:
            if not acquired:
                logger.debug("Skipping sync, already in progress")
                return SyncResult(success=False, error="already syncing")

            try:
                result = self._sync()
            except Exception as e:
                logger.exception("Sync failed")
                self._store.save_sync_state({"lastSyncStatus": "error"})
                return SyncResult(success=False, error=str(e))

            self._run_cleanup()
            return result

    def _sync(self) -> SyncResult:
        start = time.monotonic()

        if self._aggregator is not None:
            self._aggregator.process_pending()

        visits = self._unsynced_visits()
        aggregates = self._unsynced_aggregates()
        if not visits and not aggregates:
            logger.info("No data to sync")
            return SyncResult(success=True, message="no data to sync")

        client_id = self._client_id_provider()
        logger.info("Syncing %d page visits and %d tab aggregates", len(visits), len(aggregates))

        synced_visits, failed_visits = self._upload_chunks(
            client_id, visits, lambda chunk: {"page_visits": chunk}
        )
        synced_aggs, failed_aggs = self._upload_chunks(
            client_id, aggregates, lambda chunk: {"tab_aggregates": chunk}
        )

        # Mark after every chunk has completed
        now = self._clock()
        for record in synced_visits + synced_aggs:
            record.mark_synced(now)
        for record in failed_visits + failed_aggs:
            record.mark_failed()
        self._store.save_page_visits(synced_visits + failed_visits)
        self._store.save_tab_aggregates(synced_aggs + failed_aggs)

        synced = len(synced_visits) + len(synced_aggs)
        failed = len(failed_visits) + len(failed_aggs)
        status = sync_status_for(synced, failed)
        self._store.save_sync_state(
            {
                "lastSyncTime": now,
                "lastSyncStatus": status,
                "lastSyncedCounts": {
                    "pageVisits": len(synced_visits),
                    "tabAggregates": len(synced_aggs),
                },
            }
        )

        logger.info(
            "Sync %s: %d synced, %d failed in %.1fms",
            status,
            synced,
            failed,
            (time.monotonic() - start) * 1000,
        )
        return SyncResult(
            success=failed == 0,
            synced=synced,
            failed=failed,
            error=f"{failed} records failed to sync" if failed else None,
        )

    def _unsynced_visits(self) -> list[PageVisit]:
        visits = []
        untrackable = []
        for visit in self._store.get_page_visits():
            if visit.sync_status not in UNSYNCED_STATUSES:
                continue
            if not is_trackable_url(visit.url):
                untrackable.append(visit.id)
                continue
            visits.append(visit)
        if untrackable:
            # Never uploadable, and cleanup only purges synced records
            self._store.delete_page_visits(untrackable)
            logger.warning("Dropped %d page visits with non-web URLs before sync", len(untrackable))
        return visits

    def _unsynced_aggregates(self) -> list[TabAggregate]:
        return [
            agg
            for agg in self._store.get_tab_aggregates()
            if agg.sync_status in UNSYNCED_STATUSES and not is_internal_url(agg.current_url)
        ]

    def _upload_chunks(self, client_id: str, records: list, build_kwargs: Callable) -> tuple[list, list]:
        """
        Upload records chunk by chunk.

        Returns:
            (records in successful chunks, records in failed chunks)
        """
        succeeded, failed = [], []
        chunks = chunked(records, self._chunk_size)
        for index, chunk in enumerate(chunks, start=1):
            payload = [record.to_sync_record() for record in chunk]
            try:
                self._api.upload(client_id, **build_kwargs(payload))
            except SyncApiError as e:
                logger.error(
                    "Chunk %d/%d (%d records) failed: %s", index, len(chunks), len(chunk), e
                )
                failed.extend(chunk)
                continue
            logger.debug("Chunk %d/%d (%d records) uploaded", index, len(chunks), len(chunk))
            succeeded.extend(chunk)
        return succeeded, failed

    def _run_cleanup(self) -> None:
        if self._cleanup is None:
            return
        try:
            self._cleanup.run_if_due()
        except Exception:
            logger.exception("Post-sync cleanup failed")

    def get_sync_state(self) -> dict:
        """Persisted sync state plus the in-memory syncing flag."""
        state = self._store.get_sync_state()
        return {
            "isSyncing": self.syncing,
            "lastSyncTime": state.get("lastSyncTime"),
            "lastSyncStatus": state.get("lastSyncStatus"),
            "lastSyncedCounts": state.get("lastSyncedCounts", {"pageVisits": 0, "tabAggregates": 0}),
            "lastAggregationTime": state.get("lastAggregationTime"),
            "lastCleanupTime": state.get("lastCleanupTime"),
        }
