# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for external services (ports-and-adapters architecture).

This module contains concrete implementations of the base/ interfaces:
- valkey.py - Valkey client, connection check and shared adapter plumbing
- event_log.py - Raw event log (Valkey hash + timestamp index)
- aggregate_store.py - Visits, tab aggregates and singletons (Valkey)
- metadata.py - Per-URL page metadata cache (Valkey, with TTL)
- browser_state.py - Browser state snapshot probe (Valkey)
- sync_api.py - Remote sync API client (HTTP)
"""

from tabpulse.infrastructure.aggregate_store import ValkeyAggregateStore
from tabpulse.infrastructure.browser_state import ValkeyBrowserStateProbe
from tabpulse.infrastructure.event_log import ValkeyEventLog
from tabpulse.infrastructure.metadata import ValkeyMetadataProvider
from tabpulse.infrastructure.sync_api import HttpSyncApi
from tabpulse.infrastructure.valkey import (
    ValkeyAdapter,
    check_valkey_connection,
    get_valkey_client,
)

__all__ = [
    "HttpSyncApi",
    "ValkeyAdapter",
    "ValkeyAggregateStore",
    "ValkeyBrowserStateProbe",
    "ValkeyEventLog",
    "ValkeyMetadataProvider",
    "check_valkey_connection",
    "get_valkey_client",
]
