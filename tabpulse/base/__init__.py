# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the ports of the ports-and-adapters architecture.

Storage (event log, aggregate store) and external collaborators (metadata,
browser state, sync API) are reached only through these interfaces, so the
services can be exercised against in-memory or fake backends.
"""

from tabpulse.base.aggregate_store import AggregateStore
from tabpulse.base.collaborators import BrowserStateProbe, MetadataProvider, SyncApi
from tabpulse.base.event_log import EventLog
from tabpulse.base.runner import BaseRunner

__all__ = [
    "AggregateStore",
    "BaseRunner",
    "BrowserStateProbe",
    "EventLog",
    "MetadataProvider",
    "SyncApi",
]
