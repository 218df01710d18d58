# ==============================================================================
# Browser State Probe (Valkey/Redis)
# ==============================================================================
"""
BrowserStateProbe backed by the latest state snapshot written by the bridge.

The browser bridge reports state as JSON lines (see `tabpulse ingest`):

    {"kind": "state", "idleState": "active", "locked": false,
     "lastInputAt": 1700000000000, "windowFocused": true,
     "activeTab": {"tabId": 3, "url": "https://...", "audible": false}}

Each report is merged into one snapshot key. Idle state is derived from
lastInputAt against the caller's threshold when present, otherwise the
reported idleState is used while it is fresh.
"""

import json
import logging
from collections.abc import Callable

import redis
from pydantic import ValidationError

from tabpulse.base.collaborators import BrowserStateProbe
from tabpulse.core.models import ActiveTab, IdleState
from tabpulse.infrastructure.valkey import ValkeyAdapter
from tabpulse.utils.clock import now_ms

logger = logging.getLogger(__name__)


class ValkeyBrowserStateProbe(ValkeyAdapter, BrowserStateProbe):
    """Reads and writes the browser state snapshot."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        prefix: str | None = None,
        clock: Callable[[], int] = now_ms,
    ):
        super().__init__(client, prefix)
        self._snapshot_key = self._key("browser_state")
        self._clock = clock

    def load_snapshot(self) -> dict:
        raw = self._client.get(self._snapshot_key)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable browser state snapshot")
            return {}
        return data if isinstance(data, dict) else {}

    def save_snapshot(self, update: dict) -> dict:
        """
        Merge a state report into the stored snapshot.

        Args:
            update: Reported fields (camelCase); "activeTab": null clears the tab

        Returns:
            The merged snapshot
        """
        snapshot = self.load_snapshot()
        snapshot.update({k: v for k, v in update.items() if k != "kind"})
        snapshot["receivedAt"] = self._clock()
        self._client.set(self._snapshot_key, json.dumps(snapshot))
        return snapshot

    # ==========================================================================
    # BrowserStateProbe Interface Implementation
    # ==========================================================================

    def query_idle_state(self, threshold_seconds: int) -> IdleState:
        snapshot = self.load_snapshot()
        if not snapshot:
            return IdleState.IDLE

        reported = snapshot.get("idleState")
        if snapshot.get("locked") or reported == IdleState.LOCKED.value:
            return IdleState.LOCKED

        now = self._clock()
        threshold_ms = threshold_seconds * 1000

        last_input = snapshot.get("lastInputAt")
        if isinstance(last_input, (int, float)):
            return IdleState.IDLE if now - last_input >= threshold_ms else IdleState.ACTIVE

        # A report older than the threshold says nothing about the present
        received_at = snapshot.get("receivedAt", 0)
        if now - received_at >= threshold_ms:
            return IdleState.IDLE
        try:
            return IdleState(reported)
        except ValueError:
            return IdleState.IDLE

    def get_active_tab(self) -> ActiveTab | None:
        data = self.load_snapshot().get("activeTab")
        if not data:
            return None
        try:
            return ActiveTab.model_validate(data)
        except ValidationError as e:
            logger.warning("Ignoring unreadable active tab: %s", e)
            return None

    def is_window_focused(self) -> bool:
        return bool(self.load_snapshot().get("windowFocused", False))
