# ==============================================================================
# Tabpulse Utilities
# ==============================================================================
"""
Shared utilities: configuration, retry policies, clock helpers, paths and
the single-flight guard.
"""

from tabpulse.utils.clock import MS_PER_DAY, MS_PER_HOUR, MS_PER_MINUTE, MS_PER_SECOND, format_ms, now_ms
from tabpulse.utils.config import (
    AggregationSettings,
    CleanupSettings,
    HeartbeatSettings,
    Settings,
    SyncSettings,
    ValkeySettings,
    get_settings,
)
from tabpulse.utils.single_flight import SingleFlight

__all__ = [
    "MS_PER_DAY",
    "MS_PER_HOUR",
    "MS_PER_MINUTE",
    "MS_PER_SECOND",
    "AggregationSettings",
    "CleanupSettings",
    "HeartbeatSettings",
    "Settings",
    "SingleFlight",
    "SyncSettings",
    "ValkeySettings",
    "format_ms",
    "get_settings",
    "now_ms",
]
