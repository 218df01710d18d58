# ==============================================================================
# Application Services
# ==============================================================================
"""
Stateful services that drive the core pipeline against the adapters:
- events.py - Event creation and triage into the event log
- aggregator.py - Aggregation passes over the event log
- heartbeat.py - Timer-driven engagement sampler
- sync_manager.py - Chunked upload of unsynced records
- cleanup.py - Retention purges
- ingest.py - Browser bridge JSON-lines ingestion
- scheduler.py - Periodic task driver for the service runner
- factory.py - Wiring from settings
"""

from tabpulse.services.aggregator import AggregationResult, Aggregator
from tabpulse.services.anonymous_id import get_or_create_anonymous_id
from tabpulse.services.cleanup import CleanupResult, CleanupService
from tabpulse.services.events import EventRecorder, make_event_id
from tabpulse.services.factory import Services, build_services
from tabpulse.services.heartbeat import HeartbeatSampler
from tabpulse.services.ingest import BridgeIngestor, IngestResult
from tabpulse.services.scheduler import PeriodicTask, Scheduler
from tabpulse.services.sync_manager import SyncManager, SyncResult

__all__ = [
    "AggregationResult",
    "Aggregator",
    "BridgeIngestor",
    "CleanupResult",
    "CleanupService",
    "EventRecorder",
    "HeartbeatSampler",
    "IngestResult",
    "PeriodicTask",
    "Scheduler",
    "Services",
    "SyncManager",
    "SyncResult",
    "build_services",
    "get_or_create_anonymous_id",
    "make_event_id",
]
