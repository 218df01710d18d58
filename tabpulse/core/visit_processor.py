# ==============================================================================
# Visit Processor - Pure Domain Logic
# ==============================================================================
"""
Pure event folding logic with no external dependencies.

This module contains the state machine that turns an ordered stream of tab
events into page visits and tab aggregates:
- Active visit tracking (exactly one open visit system-wide)
- Visit open/close, idle periods and engagement rate
- Tab aggregate page counts and per-domain active time
- Merging a pass's results into previously stored aggregates

All inputs are passed in explicitly (events, stored state, prefetched page
metadata) and all outputs come back on an AggregationBatch. No storage,
network or clock access happens here, which allows the logic to be:
- Unit tested without mocks
- Replayed deterministically
- Composed with different persistence backends
"""

import logging
from dataclasses import dataclass, field

from tabpulse.core.categorizer import categorize
from tabpulse.core.errors import MalformedEventError
from tabpulse.core.models import (
    EventType,
    HeartbeatEvent,
    LifecycleEvent,
    PageMetadata,
    PageVisit,
    SyncStatus,
    TabAggregate,
    parse_event,
)
from tabpulse.core.urls import extract_domain

logger = logging.getLogger(__name__)

DEFAULT_HEARTBEAT_QUANTUM_MS = 30_000


@dataclass
class AggregationBatch:
    """
    In-memory unit of work for one aggregation pass.

    Attributes:
        events: Typed events being folded, in timestamp order
        active_visit: The single open visit, or None
        tab_aggregates: Working copies of every aggregate known to the pass
        metadata: Page metadata prefetched for the batch, keyed by URL
        touched_tabs: Tab ids whose aggregate changed during the pass
        active_deltas: Active time added per tab during the pass
        domain_deltas: Active time added per tab and domain during the pass
        processed_ids: Ids of events consumed (applied or rejected)
        new_visits: Visits closed during the pass, in close order
        errors: (event_id, message) for every event that could not be applied
    """

    events: list[LifecycleEvent | HeartbeatEvent] = field(default_factory=list)
    active_visit: PageVisit | None = None
    tab_aggregates: dict[int, TabAggregate] = field(default_factory=dict)
    metadata: dict[str, PageMetadata] = field(default_factory=dict)
    touched_tabs: set[int] = field(default_factory=set)
    active_deltas: dict[int, int] = field(default_factory=dict)
    domain_deltas: dict[int, dict[str, int]] = field(default_factory=dict)
    processed_ids: list[str] = field(default_factory=list)
    new_visits: list[PageVisit] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)

    @property
    def touched_aggregates(self) -> list[TabAggregate]:
        return [self.tab_aggregates[tab_id] for tab_id in sorted(self.touched_tabs)]


def parse_events(
    raw_events: list[dict],
) -> tuple[list[LifecycleEvent | HeartbeatEvent], list[tuple[str, str]]]:
    """
    Parse raw event records and sort them by timestamp.

    Args:
        raw_events: Event dicts as returned by the event log

    Returns:
        Tuple of (typed events sorted by timestamp, parse errors). The sort is
        stable, so events sharing a timestamp keep their log order.
    """
    events = []
    errors = []
    for raw in raw_events:
        try:
            events.append(parse_event(raw))
        except MalformedEventError as e:
            errors.append((e.event_id or "", str(e)))
    events.sort(key=lambda event: event.timestamp)
    return events, errors


def merge_tab_aggregate(
    stored: TabAggregate | None,
    fresh: TabAggregate,
    active_delta: int,
    domain_delta: dict[str, int],
) -> TabAggregate:
    """
    Merge one pass's result for a tab into its stored aggregate.

    Durations are additive (stored value plus this pass's delta). Page count,
    last-active time, current URL/domain and the open flag are overwritten
    with the freshly computed values. The merged record goes back to pending
    so the next sync uploads it.

    Args:
        stored: Aggregate currently in storage, or None
        fresh: Working copy computed by the pass
        active_delta: Active time accrued for this tab during the pass
        domain_delta: Per-domain active time accrued during the pass

    Returns:
        New merged TabAggregate
    """
    if stored is None:
        merged = fresh.model_copy(deep=True)
    else:
        merged = stored.model_copy(deep=True)
        merged.total_active_duration_ms = stored.total_active_duration_ms + active_delta
        for domain in fresh.domain_durations:
            merged.domain_durations.setdefault(domain, 0)
        for domain, delta in domain_delta.items():
            merged.domain_durations[domain] = merged.domain_durations.get(domain, 0) + delta
        merged.start_time = min(stored.start_time, fresh.start_time)
        merged.page_count = fresh.page_count
        merged.last_active_time = fresh.last_active_time
        merged.current_url = fresh.current_url
        merged.current_domain = fresh.current_domain
        merged.is_open = fresh.is_open
        merged.closed_at = fresh.closed_at
        merged.anonymous_client_id = fresh.anonymous_client_id or stored.anonymous_client_id

    merged.synced = False
    merged.synced_at = None
    merged.sync_status = SyncStatus.PENDING
    return merged


class VisitProcessor:
    """
    Pure event folding state machine.

    Applies CREATE, ACTIVATE, NAVIGATE, CLOSE and HEARTBEAT events one at a
    time to an AggregationBatch. The batch owns all mutable state for the
    pass, including the active visit.
    """

    def __init__(self, heartbeat_quantum_ms: int = DEFAULT_HEARTBEAT_QUANTUM_MS):
        """
        Initialize visit processor.

        Args:
            heartbeat_quantum_ms: Active time credited per engaged heartbeat.
                                 Matches the nominal heartbeat interval.
        """
        self.heartbeat_quantum_ms = heartbeat_quantum_ms

    def new_batch(
        self,
        events: list[LifecycleEvent | HeartbeatEvent],
        active_visit: PageVisit | None,
        tab_aggregates: list[TabAggregate],
        metadata: dict[str, PageMetadata] | None = None,
    ) -> AggregationBatch:
        """Build a batch holding private copies of the stored state."""
        return AggregationBatch(
            events=list(events),
            active_visit=active_visit.model_copy(deep=True) if active_visit else None,
            tab_aggregates={
                agg.tab_id: agg.model_copy(deep=True) for agg in tab_aggregates
            },
            metadata=dict(metadata or {}),
        )

    def process(self, batch: AggregationBatch) -> AggregationBatch:
        """
        Fold every event in the batch.

        An exception while applying one event is recorded on the batch with
        the event id and the fold continues with the next event. Every event,
        applied or not, is marked processed.

        Returns:
            The same batch, mutated in place
        """
        for event in batch.events:
            try:
                self.apply(batch, event)
            except Exception as e:
                logger.warning("Skipping event %s (%s): %s", event.id, event.type, e)
                batch.errors.append((event.id, str(e)))
            batch.processed_ids.append(event.id)
        return batch

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def apply(self, batch: AggregationBatch, event: LifecycleEvent | HeartbeatEvent) -> None:
        """Apply a single event to the batch."""
        event_type = event.type
        if event_type == EventType.CREATE.value:
            self._ensure_aggregate(batch, event)
        elif event_type in (EventType.ACTIVATE.value, EventType.NAVIGATE.value):
            if not event.url:
                raise MalformedEventError(f"{event_type} event has no url", event_id=event.id)
            self._activate(batch, event)
        elif event_type == EventType.CLOSE.value:
            self._close_tab(batch, event)
        elif event_type == EventType.HEARTBEAT.value:
            self._heartbeat(batch, event)
        else:
            raise MalformedEventError(f"unknown event type {event_type}", event_id=event.id)

    def _ensure_aggregate(
        self, batch: AggregationBatch, event: LifecycleEvent | HeartbeatEvent
    ) -> TabAggregate:
        aggregate = batch.tab_aggregates.get(event.tab_id)
        if aggregate is None:
            aggregate = TabAggregate.create(
                event.tab_id, event.timestamp, anonymous_client_id=event.anonymous_client_id
            )
            batch.tab_aggregates[event.tab_id] = aggregate
        batch.touched_tabs.add(event.tab_id)
        return aggregate

    def _activate(self, batch: AggregationBatch, event: LifecycleEvent | HeartbeatEvent) -> None:
        """Close whatever visit is active and open a new one for the event's tab."""
        self._close_active_visit(batch, event.timestamp, superseded_by=event.tab_id)

        domain = event.domain or extract_domain(event.url)
        metadata = batch.metadata.get(event.url)
        visit = PageVisit(
            id=PageVisit.make_id(event.tab_id, event.timestamp),
            tab_id=event.tab_id,
            url=event.url,
            domain=domain,
            title=metadata.title if metadata else "",
            started_at=event.timestamp,
            metadata=metadata,
            anonymous_client_id=event.anonymous_client_id,
        )
        visit.apply_category(categorize(visit, metadata))
        batch.active_visit = visit

        aggregate = self._ensure_aggregate(batch, event)
        aggregate.is_open = True
        aggregate.closed_at = None
        aggregate.update_activity(domain, 0, event.url, event.timestamp)

    def _close_tab(self, batch: AggregationBatch, event: LifecycleEvent) -> None:
        active = batch.active_visit
        if active is not None and active.tab_id == event.tab_id:
            self._close_active_visit(batch, event.timestamp)

        aggregate = self._ensure_aggregate(batch, event)
        aggregate.close(event.timestamp)

    def _heartbeat(self, batch: AggregationBatch, event: HeartbeatEvent) -> None:
        if batch.active_visit is None:
            if not event.url:
                return
            # First signal for a freshly focused tab
            self._activate(batch, event)

        visit = batch.active_visit
        if visit.tab_id != event.tab_id:
            return

        visit.last_heartbeat = event.timestamp
        engagement = event.engagement
        if engagement.is_engaged:
            quantum = self.heartbeat_quantum_ms
            visit.add_active_time(quantum)
            visit.end_idle(event.timestamp, engagement.reason.value)

            aggregate = self._ensure_aggregate(batch, event)
            aggregate.add_active_time(visit.domain, quantum)
            aggregate.last_active_time = max(aggregate.last_active_time, event.timestamp)
            batch.active_deltas[event.tab_id] = batch.active_deltas.get(event.tab_id, 0) + quantum
            deltas = batch.domain_deltas.setdefault(event.tab_id, {})
            deltas[visit.domain] = deltas.get(visit.domain, 0) + quantum
        else:
            visit.start_idle(event.timestamp, engagement.reason.value)

        visit.update_engagement_rate(event.timestamp)

    def _close_active_visit(
        self, batch: AggregationBatch, timestamp: int, superseded_by: int | None = None
    ) -> None:
        """
        Close the active visit, recategorize it and add it to new_visits.

        A zero-length visit superseded at the same millisecond by the same tab
        is dropped: its id would collide with the visit replacing it.
        """
        visit = batch.active_visit
        if visit is None:
            return
        batch.active_visit = None

        visit.complete(timestamp)
        if visit.duration_ms == 0 and superseded_by == visit.tab_id:
            logger.debug("Dropping zero-length visit %s", visit.id)
            return

        visit.apply_category(categorize(visit, visit.metadata))
        batch.new_visits.append(visit)

    def recover(self, visit: PageVisit, timestamp: int) -> PageVisit:
        """
        Force-close a visit left open by an unclean shutdown.

        Returns:
            A closed copy of the visit
        """
        closed = visit.model_copy(deep=True)
        closed.complete(max(timestamp, closed.last_heartbeat or closed.started_at))
        closed.apply_category(categorize(closed, closed.metadata))
        return closed
