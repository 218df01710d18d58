# ==============================================================================
# Domain Exceptions
# ==============================================================================
"""
Exception types raised by the aggregation and sync pipeline.
"""


class TabpulseError(Exception):
    """Base class for all pipeline errors."""


class MalformedEventError(TabpulseError):
    """A raw event could not be parsed or is missing a required field."""

    def __init__(self, message: str, event_id: str | None = None):
        super().__init__(message)
        self.event_id = event_id


class PersistenceError(TabpulseError):
    """Aggregated results could not be written to durable storage."""


class SyncApiError(TabpulseError):
    """An upload to the remote sync API failed.

    Attributes:
        status_code: HTTP status code, or None for transport-level failures
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
