# ==============================================================================
# Event Recorder
# ==============================================================================
"""
Builds CoreEvents and pushes them through triage into the event log.

Both native tab signals (from the browser bridge) and synthetic heartbeats
go through EventRecorder.record(), so every stored event has passed the
same triage filter.
"""

import logging
import uuid
from collections.abc import Callable

from tabpulse.base.event_log import EventLog
from tabpulse.core.engagement import calculate_engagement
from tabpulse.core.models import (
    EngagementVerdict,
    EventType,
    HeartbeatEvent,
    IdleState,
    LifecycleEvent,
)
from tabpulse.core.triage import should_store
from tabpulse.core.urls import extract_domain
from tabpulse.utils.clock import now_ms

logger = logging.getLogger(__name__)


def make_event_id(timestamp: int, tab_id: int) -> str:
    """Unique event id: evt_{timestamp}_{tabId}_{8 hex chars}."""
    return f"evt_{timestamp}_{tab_id}_{uuid.uuid4().hex[:8]}"


class EventRecorder:
    """Creates, triages and appends events."""

    def __init__(
        self,
        event_log: EventLog,
        anonymous_client_id: str | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            event_log: Destination for accepted events
            anonymous_client_id: Id stamped on every event
            clock: Source of epoch-millisecond timestamps
        """
        self._event_log = event_log
        self._client_id = anonymous_client_id
        self._clock = clock

    def create_event(
        self,
        event_type: EventType | str,
        tab_id: int,
        url: str = "",
        *,
        timestamp: int | None = None,
        idle_state: IdleState | str | None = None,
        audible: bool = False,
        window_focused: bool = False,
        engagement: EngagementVerdict | None = None,
    ) -> LifecycleEvent | HeartbeatEvent:
        """
        Build a CoreEvent with id, timestamp and derived domain.

        HEARTBEAT events take the idle state, audible and window-focus fields;
        the engagement verdict is computed from them when not given.

        Raises:
            ValueError: If event_type is not a known type
        """
        event_type = EventType(event_type)
        ts = timestamp if timestamp is not None else self._clock()
        url = url or ""
        common = {
            "id": make_event_id(ts, tab_id),
            "timestamp": ts,
            "tab_id": tab_id,
            "url": url,
            "domain": extract_domain(url),
            "anonymous_client_id": self._client_id,
        }

        if event_type != EventType.HEARTBEAT:
            return LifecycleEvent(type=event_type.value, **common)

        state = IdleState(idle_state or IdleState.ACTIVE)
        if engagement is None:
            engagement = calculate_engagement(state, audible, window_focused)
        return HeartbeatEvent(
            idle_state=state,
            audible=audible,
            window_focused=window_focused,
            engagement=engagement,
            **common,
        )

    def record(self, event: LifecycleEvent | HeartbeatEvent) -> bool:
        """
        Triage an event and append it to the event log if accepted.

        Returns:
            True if the event was stored
        """
        if not should_store(event):
            logger.debug("Triage rejected %s event for tab %d (%s)", event.type, event.tab_id, event.url)
            return False

        self._event_log.append(event)
        logger.debug("Recorded %s event %s", event.type, event.id)
        return True

    def record_signal(self, event_type: EventType | str, tab_id: int, url: str = "", **kwargs) -> bool:
        """Create and record an event in one call."""
        return self.record(self.create_event(event_type, tab_id, url, **kwargs))
