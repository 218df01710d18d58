# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no external dependencies.

This module contains:
- Domain models (events, visits, tab aggregates, engagement)
- Triage filter and URL helpers
- Categorizer rule cascade
- Visit processor (event folding state machine)

All code here is framework-agnostic and easily unit-testable.
"""

from tabpulse.core.categorizer import CONFIDENCE_THRESHOLD, Category, categorize, parse_duration
from tabpulse.core.engagement import calculate_engagement
from tabpulse.core.errors import (
    MalformedEventError,
    PersistenceError,
    SyncApiError,
    TabpulseError,
)
from tabpulse.core.models import (
    ActiveTab,
    CategoryResult,
    CoreEvent,
    EngagementReason,
    EngagementVerdict,
    EventType,
    HeartbeatEvent,
    HeartbeatSample,
    IdlePeriod,
    IdleState,
    LifecycleEvent,
    PageMetadata,
    PageVisit,
    SyncStatus,
    TabAggregate,
    parse_event,
)
from tabpulse.core.triage import should_store
from tabpulse.core.urls import extract_domain, is_internal_url, is_trackable_url
from tabpulse.core.visit_processor import AggregationBatch, VisitProcessor, merge_tab_aggregate

__all__ = [
    # Categorizer
    "CONFIDENCE_THRESHOLD",
    "Category",
    "categorize",
    "parse_duration",
    # Engagement
    "calculate_engagement",
    # Errors
    "MalformedEventError",
    "PersistenceError",
    "SyncApiError",
    "TabpulseError",
    # Models
    "ActiveTab",
    "CategoryResult",
    "CoreEvent",
    "EngagementReason",
    "EngagementVerdict",
    "EventType",
    "HeartbeatEvent",
    "HeartbeatSample",
    "IdlePeriod",
    "IdleState",
    "LifecycleEvent",
    "PageMetadata",
    "PageVisit",
    "SyncStatus",
    "TabAggregate",
    "parse_event",
    # Triage
    "should_store",
    # URLs
    "extract_domain",
    "is_internal_url",
    "is_trackable_url",
    # Visit processing
    "AggregationBatch",
    "VisitProcessor",
    "merge_tab_aggregate",
]
