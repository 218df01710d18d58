# ==============================================================================
# Event Log Abstract Base Class
# ==============================================================================
"""
Abstract interface for the durable raw event log.

The event log holds triaged CoreEvents until an aggregation pass has folded
them into visits and aggregates. It supports deletion by id and an age-based
expiry query; it does not guarantee ordering.
"""

from abc import ABC, abstractmethod

from tabpulse.core.models import HeartbeatEvent, LifecycleEvent


class EventLog(ABC):
    """Append/delete store for raw tab events."""

    @abstractmethod
    def append(self, event: LifecycleEvent | HeartbeatEvent) -> None:
        """
        Append an event to the log.

        Args:
            event: Typed CoreEvent (already triaged)
        """
        ...

    @abstractmethod
    def get_all(self) -> list[dict]:
        """
        Get every event currently in the log.

        Returns:
            Raw event dicts, each carrying its "id"
        """
        ...

    @abstractmethod
    def delete_many(self, event_ids: list[str]) -> int:
        """
        Delete events by id.

        Returns:
            Count of events deleted
        """
        ...

    @abstractmethod
    def get_older_than(self, max_age_hours: int, now: int | None = None) -> list[str]:
        """
        Get ids of events whose timestamp is older than max_age_hours.

        Args:
            max_age_hours: Age threshold in hours
            now: Reference time in epoch ms (defaults to the current time)

        Returns:
            List of event ids
        """
        ...

    @abstractmethod
    def count(self) -> int:
        """Number of events in the log."""
        ...

    @abstractmethod
    def clear(self) -> int:
        """
        Delete every event.

        Returns:
            Count of events deleted
        """
        ...
