# ==============================================================================
# Service Factory
# ==============================================================================
"""
Wires the adapters and services from settings.

Every command and the service runner build their components here, so the
wiring (key prefix, intervals, chunk size, retention) lives in one place.
"""

from dataclasses import dataclass

import redis

from tabpulse.core.visit_processor import VisitProcessor
from tabpulse.infrastructure.aggregate_store import ValkeyAggregateStore
from tabpulse.infrastructure.browser_state import ValkeyBrowserStateProbe
from tabpulse.infrastructure.event_log import ValkeyEventLog
from tabpulse.infrastructure.metadata import ValkeyMetadataProvider
from tabpulse.infrastructure.sync_api import HttpSyncApi
from tabpulse.infrastructure.valkey import get_valkey_client
from tabpulse.services.aggregator import Aggregator
from tabpulse.services.anonymous_id import get_or_create_anonymous_id
from tabpulse.services.cleanup import CleanupService
from tabpulse.services.events import EventRecorder
from tabpulse.services.heartbeat import HeartbeatSampler
from tabpulse.services.sync_manager import SyncManager
from tabpulse.utils.config import Settings, get_settings
from tabpulse.utils.single_flight import SingleFlight


@dataclass
class Services:
    """Fully wired component graph."""

    settings: Settings
    client: redis.Redis
    anonymous_client_id: str
    event_log: ValkeyEventLog
    store: ValkeyAggregateStore
    metadata: ValkeyMetadataProvider
    probe: ValkeyBrowserStateProbe
    recorder: EventRecorder
    aggregator: Aggregator
    sampler: HeartbeatSampler
    cleanup: CleanupService
    sync_manager: SyncManager


def build_services(settings: Settings | None = None, client: redis.Redis | None = None) -> Services:
    """
    Build every component against one Valkey client.

    Args:
        settings: Settings to use. If None, uses get_settings().
        client: Redis client to share. If None, creates a new connection.

    Returns:
        Services container
    """
    settings = settings or get_settings()
    client = client or get_valkey_client()
    prefix = settings.valkey.key_prefix

    event_log = ValkeyEventLog(client, prefix)
    store = ValkeyAggregateStore(client, prefix)
    metadata = ValkeyMetadataProvider(client, prefix, settings.valkey.metadata_ttl_hours)
    probe = ValkeyBrowserStateProbe(client, prefix)

    client_id = get_or_create_anonymous_id(store)
    recorder = EventRecorder(event_log, anonymous_client_id=client_id)

    aggregator = Aggregator(
        event_log,
        store,
        metadata_provider=metadata,
        processor=VisitProcessor(heartbeat_quantum_ms=settings.aggregation.heartbeat_quantum_ms),
        guard=SingleFlight(
            "aggregation",
            client=client,
            key=f"{prefix}:lock:aggregation",
            timeout=settings.valkey.lock_timeout_seconds,
        ),
    )
    sampler = HeartbeatSampler(
        probe,
        recorder,
        store,
        interval_seconds=settings.heartbeat.interval_seconds,
        idle_threshold_seconds=settings.heartbeat.idle_threshold_seconds,
        buffer_size=settings.heartbeat.buffer_size,
        persist_every=settings.heartbeat.persist_every,
    )
    cleanup = CleanupService(
        event_log,
        store,
        retention_days=settings.sync.retention_days,
        raw_event_max_age_hours=settings.cleanup.raw_event_max_age_hours,
        interval_hours=settings.cleanup.interval_hours,
    )
    api = HttpSyncApi(
        base_url=settings.sync.api_base_url,
        api_token=settings.sync.api_token,
        timeout=settings.sync.timeout_seconds,
    )
    sync_manager = SyncManager(
        store,
        api,
        aggregator=aggregator,
        cleanup=cleanup,
        client_id_provider=lambda: client_id,
        chunk_size=settings.sync.chunk_size,
        is_authenticated=lambda: settings.sync.is_authenticated,
        guard=SingleFlight(
            "sync",
            client=client,
            key=f"{prefix}:lock:sync",
            timeout=settings.valkey.lock_timeout_seconds,
        ),
    )

    return Services(
        settings=settings,
        client=client,
        anonymous_client_id=client_id,
        event_log=event_log,
        store=store,
        metadata=metadata,
        probe=probe,
        recorder=recorder,
        aggregator=aggregator,
        sampler=sampler,
        cleanup=cleanup,
        sync_manager=sync_manager,
    )
