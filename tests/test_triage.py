# ==============================================================================
# Tests for Triage and URL Helpers
# ==============================================================================
"""
Tests for should_store() and the URL helpers it relies on.
"""

from unittest.mock import MagicMock

import pytest

from tabpulse.core.triage import should_store
from tabpulse.core.urls import extract_domain, is_internal_url, is_trackable_url
from tabpulse.services.events import EventRecorder

T0 = 1_700_000_000_000

# ==============================================================================
# Helpers
# ==============================================================================


def _make_event(event_type: str, url: str, tab_id: int = 1):
    """Build a CoreEvent without touching storage."""
    recorder = EventRecorder(MagicMock(), anonymous_client_id="client-1", clock=lambda: T0)
    return recorder.create_event(event_type, tab_id, url)


# ==============================================================================
# URL helpers
# ==============================================================================


class TestExtractDomain:
    """Tests for extract_domain()."""

    def test_strips_www(self):
        assert extract_domain("https://www.example.com/page") == "example.com"

    def test_keeps_subdomain(self):
        assert extract_domain("https://docs.google.com/document/d/1/edit") == "docs.google.com"

    def test_lowercases_host(self):
        assert extract_domain("https://GitHub.com/org/repo") == "github.com"

    def test_empty_and_none(self):
        assert extract_domain("") == ""
        assert extract_domain(None) == ""

    def test_internal_scheme_host(self):
        """chrome://newtab/ yields its host so triage can see 'newtab'."""
        assert extract_domain("chrome://newtab/") == "newtab"


class TestInternalUrls:
    """Tests for is_internal_url() and is_trackable_url()."""

    @pytest.mark.parametrize(
        "url",
        [
            "about:blank",
            "chrome://settings",
            "chrome-extension://abc/popup.html",
            "moz-extension://abc/page.html",
            "edge://flags",
            "file:///home/user/notes.txt",
            "data:text/html,hi",
            "view-source:https://example.com",
        ],
    )
    def test_internal(self, url):
        assert is_internal_url(url)
        assert not is_trackable_url(url)

    def test_web_url_is_trackable(self):
        assert not is_internal_url("https://example.com")
        assert is_trackable_url("https://example.com")

    def test_empty_url(self):
        """Empty URLs are not internal, but not trackable either."""
        assert not is_internal_url("")
        assert not is_trackable_url("")


# ==============================================================================
# should_store
# ==============================================================================


class TestShouldStore:
    """Tests for the ordered triage rules."""

    def test_accepts_normal_navigation(self):
        assert should_store(_make_event("NAVIGATE", "https://example.com/a"))

    def test_rejects_internal_url(self):
        assert not should_store(_make_event("ACTIVATE", "chrome://settings"))

    def test_close_with_internal_url_is_kept(self):
        """CLOSE events are exempt from the internal URL rule."""
        assert should_store(_make_event("CLOSE", "chrome://settings"))

    def test_rejects_newtab_domain(self):
        assert not should_store(_make_event("CREATE", "https://newtab.example.com"))

    def test_rejects_newtab_even_for_close(self):
        """The newtab rule applies to every event type."""
        assert not should_store(_make_event("CLOSE", "chrome://newtab/"))

    def test_rejects_empty_domain_for_lifecycle(self):
        assert not should_store(_make_event("CREATE", ""))

    def test_close_without_url_is_kept(self):
        assert should_store(_make_event("CLOSE", ""))

    def test_heartbeat_without_url_is_kept(self):
        assert should_store(_make_event("HEARTBEAT", ""))


class TestEventRecorder:
    """Tests for EventRecorder.record() routing through triage."""

    def test_accepted_event_is_appended(self):
        event_log = MagicMock()
        recorder = EventRecorder(event_log, clock=lambda: T0)

        assert recorder.record_signal("ACTIVATE", 3, "https://example.com") is True
        event_log.append.assert_called_once()
        event = event_log.append.call_args[0][0]
        assert event.tab_id == 3
        assert event.domain == "example.com"
        assert event.timestamp == T0

    def test_rejected_event_is_not_appended(self):
        event_log = MagicMock()
        recorder = EventRecorder(event_log, clock=lambda: T0)

        assert recorder.record_signal("ACTIVATE", 3, "about:blank") is False
        event_log.append.assert_not_called()

    def test_event_id_format(self):
        event = _make_event("CREATE", "https://example.com", tab_id=7)
        assert event.id.startswith(f"evt_{T0}_7_")
        assert len(event.id.rsplit("_", 1)[1]) == 8

    def test_unknown_type_raises(self):
        recorder = EventRecorder(MagicMock(), clock=lambda: T0)
        with pytest.raises(ValueError):
            recorder.create_event("SCROLL", 1, "https://example.com")

    def test_heartbeat_engagement_computed(self):
        recorder = EventRecorder(MagicMock(), clock=lambda: T0)
        event = recorder.create_event(
            "HEARTBEAT", 1, "https://example.com", idle_state="idle", audible=True
        )
        assert event.engagement.is_engaged is True
        assert event.engagement.reason.value == "audio"
