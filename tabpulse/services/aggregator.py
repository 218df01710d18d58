# ==============================================================================
# Aggregator
# ==============================================================================
"""
Drains the event log into page visits and tab aggregates.

One aggregation pass:

    1. event_log.get_all()                         - load raw events
    2. drop events an earlier pass already applied - see below
    3. parse + sort by timestamp                   - malformed events become errors
    4. load active visit, tab aggregates, metadata - one round-trip each
    5. VisitProcessor.process(batch)               - pure fold
    6. insert visits, then commit merged           - insert-if-absent, then one
       aggregates + pointer + applied event ids      MULTI/EXEC
    7. event_log.delete_many(processed ids)        - only after 6 succeeded
    8. forget the applied event ids

A failure in step 6 aborts the pass with every event still in the log, so the
next pass re-processes them. A crash between 6 and 7 leaves events in the log
whose effect is already in the aggregates; step 2 skips them by the applied
ids committed alongside the aggregates, so page counts and durations are not
counted twice.

Calls are single-flight: an overlapping call returns immediately with
success=False. When the guard is backed by a Valkey lock, this also holds
across processes sharing the same store.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from tabpulse.base.aggregate_store import AggregateStore
from tabpulse.base.collaborators import MetadataProvider
from tabpulse.base.event_log import EventLog
from tabpulse.core.errors import PersistenceError
from tabpulse.core.models import PageMetadata, PageVisit
from tabpulse.core.visit_processor import (
    AggregationBatch,
    VisitProcessor,
    merge_tab_aggregate,
    parse_events,
)
from tabpulse.utils.clock import now_ms
from tabpulse.utils.single_flight import SingleFlight

logger = logging.getLogger(__name__)


@dataclass
class AggregationResult:
    """Outcome of one aggregation pass."""

    success: bool
    processed_count: int = 0
    error_count: int = 0
    new_visits: int = 0
    touched_aggregates: int = 0
    errors: list[tuple[str, str]] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "processedCount": self.processed_count,
            "errorCount": self.error_count,
            "newVisits": self.new_visits,
            "touchedAggregates": self.touched_aggregates,
            "error": self.error,
        }


class Aggregator:
    """Runs aggregation passes against an event log and an aggregate store."""

    def __init__(
        self,
        event_log: EventLog,
        store: AggregateStore,
        metadata_provider: MetadataProvider | None = None,
        processor: VisitProcessor | None = None,
        clock: Callable[[], int] = now_ms,
        guard: SingleFlight | None = None,
    ):
        self._event_log = event_log
        self._store = store
        self._metadata_provider = metadata_provider
        self._processor = processor or VisitProcessor()
        self._clock = clock
        self._guard = guard or SingleFlight("aggregation")

    @property
    def running(self) -> bool:
        return self._guard.running

    def process_pending(self) -> AggregationResult:
        """
        Run one aggregation pass.

        Safe to call frequently: an empty event log is a cheap no-op.

        Returns:
            AggregationResult with counts, or success=False with an error
        """
        with self._guard.hold() as acquired:
            if not acquired:
                logger.debug("Aggregation already in progress, skipping")
                return AggregationResult(success=False, error="already aggregating")
            try:
                return self._process()
            except Exception as e:
                logger.exception("Aggregation pass failed")
                return AggregationResult(success=False, error=str(e))

    def _process(self) -> AggregationResult:
        start = time.monotonic()

        raw_events = self._event_log.get_all()
        if not raw_events:
            return AggregationResult(success=True)

        # Folded by a committed pass whose delete never happened
        applied = set(self._store.get_applied_event_ids())
        replayed_ids = [raw["id"] for raw in raw_events if raw.get("id") in applied]
        if replayed_ids:
            logger.warning(
                "Skipping %d events already applied by an interrupted pass", len(replayed_ids)
            )
            raw_events = [raw for raw in raw_events if raw.get("id") not in applied]

        events, parse_errors = parse_events(raw_events)
        for event_id, message in parse_errors:
            logger.warning("Skipping malformed event %s: %s", event_id or "<no id>", message)
        t_load = time.monotonic()

        batch = self._processor.new_batch(
            events,
            self._store.get_active_visit(),
            self._store.get_tab_aggregates(),
            self._prefetch_metadata(events),
        )
        self._processor.process(batch)
        t_fold = time.monotonic()

        # Persist; a failure here leaves every event in the log
        try:
            inserted = self._persist(batch)
        except PersistenceError as e:
            logger.error("Aggregation aborted, %d events kept for retry: %s", len(raw_events), e)
            return AggregationResult(
                success=False,
                error_count=len(parse_errors) + len(batch.errors),
                error=str(e),
            )
        t_persist = time.monotonic()

        consumed_ids = batch.processed_ids + [eid for eid, _ in parse_errors if eid] + replayed_ids
        self._event_log.delete_many(consumed_ids)
        self._store.clear_applied_event_ids(sorted(applied.union(batch.processed_ids)))
        t_delete = time.monotonic()

        errors = parse_errors + batch.errors
        logger.info(
            "Aggregated %d events: %d visits (%d new), %d tabs, %d errors "
            "[load=%.1fms fold=%.1fms persist=%.1fms delete=%.1fms]",
            len(consumed_ids),
            len(batch.new_visits),
            inserted,
            len(batch.touched_tabs),
            len(errors),
            (t_load - start) * 1000,
            (t_fold - t_load) * 1000,
            (t_persist - t_fold) * 1000,
            (t_delete - t_persist) * 1000,
        )

        return AggregationResult(
            success=True,
            processed_count=len(consumed_ids),
            error_count=len(errors),
            new_visits=len(batch.new_visits),
            touched_aggregates=len(batch.touched_tabs),
            errors=errors,
        )

    def _prefetch_metadata(self, events) -> dict[str, PageMetadata]:
        if self._metadata_provider is None:
            return {}
        urls = [event.url for event in events if event.url]
        if not urls:
            return {}
        try:
            return self._metadata_provider.get_many(urls)
        except Exception as e:
            # Categorization degrades to URL rules without metadata
            logger.warning("Metadata lookup failed, categorizing without it: %s", e)
            return {}

    def _persist(self, batch: AggregationBatch) -> int:
        """
        Write the batch's results.

        Returns:
            Count of visits newly inserted

        Raises:
            PersistenceError: If any write fails
        """
        try:
            inserted = self._store.add_page_visits(batch.new_visits)

            stored = {agg.tab_id: agg for agg in self._store.get_tab_aggregates()}
            merged = [
                merge_tab_aggregate(
                    stored.get(fresh.tab_id),
                    fresh,
                    batch.active_deltas.get(fresh.tab_id, 0),
                    batch.domain_deltas.get(fresh.tab_id, {}),
                )
                for fresh in batch.touched_aggregates
            ]
            self._store.commit_aggregation(merged, batch.active_visit, batch.processed_ids)
            self._store.save_sync_state({"lastAggregationTime": self._clock()})
        except Exception as e:
            raise PersistenceError(str(e)) from e
        return inserted

    def recover_active_visit(self, now: int | None = None) -> PageVisit | None:
        """
        Close a visit left open by a previous process.

        Run once at startup, after draining pending events. The visit is
        closed at now, stored as a completed visit and the pointer cleared.

        Returns:
            The closed visit, or None if no visit was open
        """
        with self._guard.hold() as acquired:
            if not acquired:
                return None

            visit = self._store.get_active_visit()
            if visit is None:
                return None

            closed = self._processor.recover(visit, now if now is not None else self._clock())
            self._store.add_page_visits([closed])
            self._store.set_active_visit(None)
            logger.info(
                "Recovered open visit %s (%s), closed after %d ms",
                closed.id,
                closed.domain,
                closed.duration_ms,
            )
            return closed
