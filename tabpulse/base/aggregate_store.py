# ==============================================================================
# Aggregate Store Abstract Base Class
# ==============================================================================
"""
Abstract interface for durable aggregated storage.

Holds page visits keyed by id, tab aggregates keyed by tab id, the single
active-visit record, the last-sync state record, the heartbeat ring buffer,
and a few small singleton values (anonymous client id, timestamps).
"""

from abc import ABC, abstractmethod

from tabpulse.core.models import PageVisit, TabAggregate


class AggregateStore(ABC):
    """Key-value store for visits, aggregates and pipeline singletons."""

    # ==========================================================================
    # Page Visits
    # ==========================================================================

    @abstractmethod
    def get_page_visits(self) -> list[PageVisit]:
        """Get all stored page visits, oldest first."""
        ...

    @abstractmethod
    def save_page_visits(self, visits: list[PageVisit]) -> None:
        """Upsert page visits by id."""
        ...

    @abstractmethod
    def add_page_visits(self, visits: list[PageVisit]) -> int:
        """
        Insert page visits whose id is not already stored.

        Returns:
            Count of visits actually inserted
        """
        ...

    @abstractmethod
    def delete_page_visits(self, visit_ids: list[str]) -> int:
        """Delete page visits by id. Returns count deleted."""
        ...

    # ==========================================================================
    # Tab Aggregates
    # ==========================================================================

    @abstractmethod
    def get_tab_aggregates(self) -> list[TabAggregate]:
        """Get all stored tab aggregates."""
        ...

    @abstractmethod
    def save_tab_aggregates(self, aggregates: list[TabAggregate]) -> None:
        """Upsert tab aggregates by tab id."""
        ...

    @abstractmethod
    def delete_tab_aggregates(self, tab_ids: list[int]) -> int:
        """Delete tab aggregates by tab id. Returns count deleted."""
        ...

    # ==========================================================================
    # Active Visit
    # ==========================================================================

    @abstractmethod
    def get_active_visit(self) -> PageVisit | None:
        """Get the open visit, or None."""
        ...

    @abstractmethod
    def set_active_visit(self, visit: PageVisit | None) -> None:
        """Replace the open visit (None clears it)."""
        ...

    # ==========================================================================
    # Aggregation Commit
    # ==========================================================================

    @abstractmethod
    def commit_aggregation(
        self,
        aggregates: list[TabAggregate],
        active_visit: PageVisit | None,
        applied_event_ids: list[str],
    ) -> None:
        """
        Atomically write a pass's merged aggregates, the active visit pointer
        and the ids of the events the pass folded.

        Either all three land or none do, so a pass replayed after a crash
        can tell which events are already reflected in the aggregates.
        """
        ...

    @abstractmethod
    def get_applied_event_ids(self) -> set[str]:
        """Ids of events folded by a committed pass but not yet deleted from the log."""
        ...

    @abstractmethod
    def clear_applied_event_ids(self, event_ids: list[str]) -> int:
        """Forget applied event ids once their events are gone. Returns count removed."""
        ...

    # ==========================================================================
    # Singletons
    # ==========================================================================

    @abstractmethod
    def get_sync_state(self) -> dict:
        """Get the last-sync state record (empty dict if never synced)."""
        ...

    @abstractmethod
    def save_sync_state(self, state: dict) -> None:
        """Merge keys into the last-sync state record."""
        ...

    @abstractmethod
    def get_heartbeats(self) -> list[dict]:
        """Get the persisted heartbeat ring buffer."""
        ...

    @abstractmethod
    def save_heartbeats(self, heartbeats: list[dict]) -> None:
        """Replace the persisted heartbeat ring buffer."""
        ...

    @abstractmethod
    def get_value(self, key: str) -> str | None:
        """Get a small singleton value."""
        ...

    @abstractmethod
    def set_value(self, key: str, value: str) -> None:
        """Set a small singleton value."""
        ...

    @abstractmethod
    def clear_all(self) -> int:
        """
        Delete everything in the store.

        Returns:
            Count of keys deleted
        """
        ...
