# ==============================================================================
# External Collaborator Abstract Base Classes
# ==============================================================================
"""
Abstract interfaces for the collaborators the pipeline talks to but does not own:

- MetadataProvider: page metadata scraped by the content script
- BrowserStateProbe: idle/lock state, focused tab and window focus
- SyncApi: the remote store that receives aggregated records
"""

from abc import ABC, abstractmethod

from tabpulse.core.models import ActiveTab, IdleState, PageMetadata


class MetadataProvider(ABC):
    """Source of per-URL page metadata."""

    @abstractmethod
    def get_metadata(self, url: str) -> PageMetadata | None:
        """
        Get metadata for a URL.

        Returns:
            PageMetadata, or None if nothing is known about the page
        """
        ...

    @abstractmethod
    def get_many(self, urls: list[str]) -> dict[str, PageMetadata]:
        """
        Get metadata for several URLs in one round-trip.

        Returns:
            Dict mapping url to metadata. Unknown URLs are omitted.
        """
        ...

    @abstractmethod
    def put(self, url: str, metadata: PageMetadata) -> None:
        """Record metadata for a URL."""
        ...


class BrowserStateProbe(ABC):
    """Read-only view of the browser's current engagement-relevant state."""

    @abstractmethod
    def query_idle_state(self, threshold_seconds: int) -> IdleState:
        """
        Get the system idle state.

        Args:
            threshold_seconds: Seconds without input before the user counts as idle
        """
        ...

    @abstractmethod
    def get_active_tab(self) -> ActiveTab | None:
        """Get the focused tab, or None when no tab is focused."""
        ...

    @abstractmethod
    def is_window_focused(self) -> bool:
        """True if a browser window has OS focus."""
        ...


class SyncApi(ABC):
    """Remote store for aggregated records."""

    @abstractmethod
    def upload(
        self,
        client_id: str,
        page_visits: list[dict] | None = None,
        tab_aggregates: list[dict] | None = None,
    ) -> dict:
        """
        Upload one batch of records.

        Args:
            client_id: Anonymous client id the records belong to
            page_visits: Serialized page visits (or None)
            tab_aggregates: Serialized tab aggregates (or None)

        Returns:
            Response body as a dict

        Raises:
            SyncApiError: If the batch was not accepted
        """
        ...
