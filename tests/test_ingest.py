# ==============================================================================
# Tests for BridgeIngestor
# ==============================================================================
"""
Tests for applying JSON-lines bridge messages: events through triage,
browser state snapshots and page metadata.
"""

import json

from tabpulse.core.models import IdleState
from tabpulse.services.events import EventRecorder
from tabpulse.services.ingest import BridgeIngestor

T0 = 1_700_000_000_000

# ==============================================================================
# Helpers
# ==============================================================================


def _make_ingestor(event_log, probe, metadata_provider, clock) -> BridgeIngestor:
    recorder = EventRecorder(event_log, anonymous_client_id="client-1", clock=clock)
    return BridgeIngestor(recorder, probe, metadata_provider)


def _lines(*messages) -> list[str]:
    return [m if isinstance(m, str) else json.dumps(m) for m in messages]


# ==============================================================================
# Dispatch
# ==============================================================================


class TestIngestLines:
    """Tests for BridgeIngestor.ingest_lines()."""

    def test_events_recorded_and_rejected(self, event_log, probe, metadata_provider, clock):
        ingestor = _make_ingestor(event_log, probe, metadata_provider, clock)

        result = ingestor.ingest_lines(
            _lines(
                {"kind": "event", "type": "ACTIVATE", "tabId": 1, "url": "https://example.com", "timestamp": T0},
                {"type": "NAVIGATE", "tabId": 1, "url": "chrome://settings"},
            )
        )

        assert result.events_recorded == 1
        assert result.events_rejected == 1
        records = event_log.get_all()
        assert len(records) == 1
        assert records[0]["timestamp"] == T0
        assert records[0]["anonymousClientId"] == "client-1"

    def test_heartbeat_fields_mapped(self, event_log, probe, metadata_provider, clock):
        ingestor = _make_ingestor(event_log, probe, metadata_provider, clock)

        ingestor.ingest_lines(
            _lines(
                {
                    "type": "HEARTBEAT",
                    "tabId": 2,
                    "url": "https://example.com",
                    "idleState": "idle",
                    "audible": True,
                    "windowFocused": False,
                }
            )
        )

        record = event_log.get_all()[0]
        assert record["idleState"] == "idle"
        assert record["audible"] is True
        assert record["engagement"]["reason"] == "audio"
        assert record["timestamp"] == T0

    def test_state_updates_probe(self, event_log, probe, metadata_provider, clock):
        ingestor = _make_ingestor(event_log, probe, metadata_provider, clock)

        result = ingestor.ingest_lines(
            _lines(
                {
                    "kind": "state",
                    "lastInputAt": T0,
                    "windowFocused": True,
                    "activeTab": {"tabId": 7, "url": "https://example.com"},
                }
            )
        )

        assert result.states == 1
        assert probe.query_idle_state(60) == IdleState.ACTIVE
        assert probe.get_active_tab().tab_id == 7

    def test_metadata_cached(self, event_log, probe, metadata_provider, clock):
        ingestor = _make_ingestor(event_log, probe, metadata_provider, clock)

        result = ingestor.ingest_lines(
            _lines(
                {
                    "kind": "metadata",
                    "url": "https://example.com/post",
                    "title": "A post",
                    "metadata": {"schemaType": ["Article"], "wordCount": 2500},
                }
            )
        )

        assert result.metadata == 1
        metadata = metadata_provider.get_metadata("https://example.com/post")
        assert metadata.title == "A post"
        assert metadata.schema_type == "Article"
        assert metadata.word_count == 2500

    def test_malformed_lines_counted(self, event_log, probe, metadata_provider, clock):
        ingestor = _make_ingestor(event_log, probe, metadata_provider, clock)

        result = ingestor.ingest_lines(
            [
                "{not json",
                "",
                "[1, 2]",
                json.dumps({"kind": "telemetry"}),
                json.dumps({"type": "ACTIVATE"}),
                json.dumps({"type": "SCROLL", "tabId": 1}),
                json.dumps({"type": "CLOSE", "tabId": 1}),
            ]
        )

        assert result.malformed == 5
        assert result.events_recorded == 1
        assert result.total == 6
        assert result.errors[0].startswith("line 1:")
