# ==============================================================================
# Sync API Client
# ==============================================================================
"""
HTTP implementation of the SyncApi interface.

Posts one batch per request to {api_base_url}/data/sync:

    {"anonymousClientId": "...", "pageVisits": [...], "tabAggregates": [...]}

with a bearer token and an explicit timeout. Connection errors and timeouts
get a light retry (3 attempts, ~7 seconds); anything still failing is
raised as SyncApiError so the caller can mark the batch failed.
"""

import logging

import requests

from tabpulse.base.collaborators import SyncApi
from tabpulse.core.errors import SyncApiError
from tabpulse.utils.config import get_settings
from tabpulse.utils.retry import HTTP_RETRY_EXCEPTIONS, retry_light

logger = logging.getLogger(__name__)

SYNC_PATH = "/data/sync"


class HttpSyncApi(SyncApi):
    """Sync API client using requests."""

    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        timeout: int | None = None,
        session: requests.Session | None = None,
    ):
        """
        Args:
            base_url: API base URL. If None, uses settings.
            api_token: Bearer token. If None, uses settings.
            timeout: Request timeout in seconds. If None, uses settings.
            session: requests session to reuse (a new one by default)
        """
        settings = get_settings().sync
        self._base_url = (base_url or settings.api_base_url).rstrip("/")
        self._api_token = api_token if api_token is not None else settings.api_token
        self._timeout = timeout if timeout is not None else settings.timeout_seconds
        self._session = session or requests.Session()

    @property
    def url(self) -> str:
        return f"{self._base_url}{SYNC_PATH}"

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"
        return headers

    @retry_light(HTTP_RETRY_EXCEPTIONS, logger)
    def _post(self, payload: dict) -> requests.Response:
        return self._session.post(
            self.url, json=payload, headers=self._headers(), timeout=self._timeout
        )

    def upload(
        self,
        client_id: str,
        page_visits: list[dict] | None = None,
        tab_aggregates: list[dict] | None = None,
    ) -> dict:
        payload = {
            "anonymousClientId": client_id,
            "pageVisits": page_visits or [],
            "tabAggregates": tab_aggregates or [],
        }

        try:
            response = self._post(payload)
        except requests.exceptions.Timeout as e:
            raise SyncApiError(f"upload timed out after {self._timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise SyncApiError(f"upload failed: {e}") from e

        if response.status_code >= 400:
            raise SyncApiError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"data": body}

        if body.get("success") is False:
            raise SyncApiError(
                body.get("error") or "batch rejected", status_code=response.status_code
            )
        return body
