# ==============================================================================
# Triage Filter
# ==============================================================================
"""
Pre-storage filter deciding whether a raw event is worth persisting.

Rules are applied in order and the first match wins:

1. Reject internal/non-web URLs (about:, chrome://, file:, data:, ...),
   except for CLOSE events which carry no usable URL.
2. Reject any domain containing "newtab".
3. Reject an empty domain, except for CLOSE and HEARTBEAT events.
4. Accept everything else.
"""

from tabpulse.core.models import EventType, HeartbeatEvent, LifecycleEvent
from tabpulse.core.urls import is_internal_url

# Event types allowed to carry no domain
DOMAINLESS_TYPES = frozenset({EventType.CLOSE.value, EventType.HEARTBEAT.value})


def should_store(event: LifecycleEvent | HeartbeatEvent) -> bool:
    """
    Decide whether an event should be written to the event log.

    Args:
        event: Typed CoreEvent

    Returns:
        True to store, False to discard
    """
    event_type = event.type
    domain = event.domain or ""

    if event_type != EventType.CLOSE.value and is_internal_url(event.url):
        return False

    if "newtab" in domain:
        return False

    if not domain and event_type not in DOMAINLESS_TYPES:
        return False

    return True
