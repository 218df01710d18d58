# ==============================================================================
# Bridge Ingestion
# ==============================================================================
"""
Applies JSON-lines messages from the browser bridge.

Each line is one JSON object with a "kind":

    event     {"kind": "event", "type": "ACTIVATE", "tabId": 3, "url": "...", "timestamp": ...}
    state     {"kind": "state", "idleState": "active", "lastInputAt": ..., "activeTab": {...}}
    metadata  {"kind": "metadata", "url": "...", "title": "...", "metadata": {...}}

Events go through the EventRecorder (and therefore triage); state reports
update the browser state snapshot read by the heartbeat sampler; metadata is
cached for categorization. A malformed line is counted and logged, never fatal.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from pydantic import ValidationError

from tabpulse.base.collaborators import MetadataProvider
from tabpulse.core.models import EventType, PageMetadata
from tabpulse.infrastructure.browser_state import ValkeyBrowserStateProbe
from tabpulse.services.events import EventRecorder

logger = logging.getLogger(__name__)

HEARTBEAT_FIELDS = {
    "idleState": "idle_state",
    "audible": "audible",
    "windowFocused": "window_focused",
}


@dataclass
class IngestResult:
    """Counts from one ingest run."""

    events_recorded: int = 0
    events_rejected: int = 0
    states: int = 0
    metadata: int = 0
    malformed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.events_recorded + self.events_rejected + self.states + self.metadata + self.malformed


class BridgeIngestor:
    """Dispatches bridge messages to the recorder, probe and metadata cache."""

    def __init__(
        self,
        recorder: EventRecorder,
        probe: ValkeyBrowserStateProbe,
        metadata_provider: MetadataProvider,
    ):
        self._recorder = recorder
        self._probe = probe
        self._metadata_provider = metadata_provider

    def ingest_lines(self, lines: Iterable[str]) -> IngestResult:
        result = IngestResult()
        for line_no, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                message = json.loads(line)
                if not isinstance(message, dict):
                    raise ValueError("expected a JSON object")
                self.apply(message, result)
            except (ValueError, KeyError, TypeError, ValidationError) as e:
                result.malformed += 1
                result.errors.append(f"line {line_no}: {e}")
                logger.warning("Skipping malformed bridge message on line %d: %s", line_no, e)
        return result

    def apply(self, message: dict, result: IngestResult) -> None:
        """
        Apply one decoded message.

        Raises:
            ValueError: If the kind is unknown or required fields are missing
        """
        kind = message.get("kind", "event")

        if kind == "event":
            if self._record_event(message):
                result.events_recorded += 1
            else:
                result.events_rejected += 1
        elif kind == "state":
            self._probe.save_snapshot(message)
            result.states += 1
        elif kind == "metadata":
            self._store_metadata(message)
            result.metadata += 1
        else:
            raise ValueError(f"unknown message kind {kind!r}")

    def _record_event(self, message: dict) -> bool:
        event_type = EventType(message["type"])
        kwargs = {}
        if message.get("timestamp") is not None:
            kwargs["timestamp"] = int(message["timestamp"])
        if event_type == EventType.HEARTBEAT:
            for source, target in HEARTBEAT_FIELDS.items():
                if source in message:
                    kwargs[target] = message[source]
        return self._recorder.record_signal(
            event_type, int(message["tabId"]), message.get("url") or "", **kwargs
        )

    def _store_metadata(self, message: dict) -> None:
        url = message["url"]
        data = dict(message.get("metadata") or {})
        if "title" in message:
            data.setdefault("title", message["title"])
        self._metadata_provider.put(url, PageMetadata.model_validate(data))
