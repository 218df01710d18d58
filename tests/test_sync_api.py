# ==============================================================================
# Tests for HttpSyncApi
# ==============================================================================
"""
Tests for the requests-based sync client. The session is a MagicMock, so no
network traffic happens.
"""

from unittest.mock import MagicMock

import pytest

from tabpulse.core.errors import SyncApiError
from tabpulse.infrastructure.sync_api import HttpSyncApi

# ==============================================================================
# Helpers
# ==============================================================================


def _make_response(status_code: int = 200, body=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body if body is not None else {"success": True}
    return response


def _make_api(response: MagicMock, token: str | None = "secret-token") -> tuple[HttpSyncApi, MagicMock]:
    session = MagicMock()
    session.post.return_value = response
    api = HttpSyncApi(
        base_url="https://api.example.com/v1/", api_token=token, timeout=5, session=session
    )
    return api, session


# ==============================================================================
# Requests
# ==============================================================================


class TestUploadRequest:
    """Tests for the request HttpSyncApi sends."""

    def test_posts_payload(self):
        api, session = _make_api(_make_response())

        body = api.upload("client-1", page_visits=[{"id": "pv_1"}])

        assert body == {"success": True}
        session.post.assert_called_once()
        args, kwargs = session.post.call_args
        assert args[0] == "https://api.example.com/v1/data/sync"
        assert kwargs["json"] == {
            "anonymousClientId": "client-1",
            "pageVisits": [{"id": "pv_1"}],
            "tabAggregates": [],
        }
        assert kwargs["timeout"] == 5
        assert kwargs["headers"]["Authorization"] == "Bearer secret-token"

    def test_no_token_no_auth_header(self):
        api, session = _make_api(_make_response(), token="")
        api.upload("client-1", tab_aggregates=[{"tabId": 1}])
        headers = session.post.call_args.kwargs["headers"]
        assert "Authorization" not in headers
        assert headers["Content-Type"] == "application/json"

    def test_non_json_body_is_accepted(self):
        api, _ = _make_api(_make_response(body=ValueError("no json")))
        assert api.upload("client-1") == {}


# ==============================================================================
# Failures
# ==============================================================================


class TestUploadFailures:
    """Tests for errors surfaced as SyncApiError."""

    @pytest.mark.parametrize("status_code", [400, 401, 500, 503])
    def test_http_error_status(self, status_code):
        api, _ = _make_api(_make_response(status_code=status_code, text="nope"))

        with pytest.raises(SyncApiError) as exc_info:
            api.upload("client-1", page_visits=[{"id": "pv_1"}])

        assert exc_info.value.status_code == status_code
        assert f"HTTP {status_code}" in str(exc_info.value)

    def test_rejected_batch(self):
        api, _ = _make_api(_make_response(body={"success": False, "error": "quota exceeded"}))

        with pytest.raises(SyncApiError, match="quota exceeded"):
            api.upload("client-1", page_visits=[{"id": "pv_1"}])
