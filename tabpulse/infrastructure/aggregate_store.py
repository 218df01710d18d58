# ==============================================================================
# Aggregate Store Implementation (Valkey/Redis)
# ==============================================================================
"""
Valkey/Redis implementation of the AggregateStore interface.

Layout:
    {prefix}:page_visits      hash    visit id -> JSON PageVisit
    {prefix}:tab_aggregates   hash    tab id -> JSON TabAggregate
    {prefix}:active_visit     string  JSON PageVisit (absent when no visit is open)
    {prefix}:applied_events   set     ids of events folded but not yet deleted
    {prefix}:sync_state       hash    field -> JSON value
    {prefix}:heartbeats       string  JSON list of heartbeat samples
    {prefix}:meta:{key}       string  small singleton values
"""

import json
import logging

import redis
from pydantic import ValidationError

from tabpulse.base.aggregate_store import AggregateStore
from tabpulse.core.models import PageVisit, TabAggregate
from tabpulse.infrastructure.valkey import ValkeyAdapter

logger = logging.getLogger(__name__)


class ValkeyAggregateStore(ValkeyAdapter, AggregateStore):
    """
    Valkey/Redis implementation of AggregateStore.

    Records that fail validation on read are logged and skipped rather than
    failing the whole read.
    """

    def __init__(self, client: redis.Redis | None = None, prefix: str | None = None):
        super().__init__(client, prefix)
        self._visits_key = self._key("page_visits")
        self._aggregates_key = self._key("tab_aggregates")
        self._active_key = self._key("active_visit")
        self._applied_key = self._key("applied_events")
        self._sync_state_key = self._key("sync_state")
        self._heartbeats_key = self._key("heartbeats")

    def _meta_key(self, key: str) -> str:
        return self._key("meta", key)

    # ==========================================================================
    # Page Visits
    # ==========================================================================

    def get_page_visits(self) -> list[PageVisit]:
        visits = []
        for visit_id, raw in self._client.hgetall(self._visits_key).items():
            try:
                visits.append(PageVisit.model_validate_json(raw))
            except ValidationError as e:
                logger.warning("Skipping unreadable page visit %s: %s", visit_id, e)
        visits.sort(key=lambda v: (v.started_at, v.id))
        return visits

    def save_page_visits(self, visits: list[PageVisit]) -> None:
        if not visits:
            return
        mapping = {v.id: v.model_dump_json(by_alias=True) for v in visits}
        self._execute_pipeline_with_retry(lambda pipe: pipe.hset(self._visits_key, mapping=mapping))

    def add_page_visits(self, visits: list[PageVisit]) -> int:
        """Insert visits with HSETNX so a replayed visit never overwrites the stored one."""
        if not visits:
            return 0

        results = self._execute_pipeline_with_retry(
            lambda pipe: [
                pipe.hsetnx(self._visits_key, v.id, v.model_dump_json(by_alias=True))
                for v in visits
            ]
        )
        return sum(1 for inserted in results if inserted)

    def delete_page_visits(self, visit_ids: list[str]) -> int:
        if not visit_ids:
            return 0
        return int(self._client.hdel(self._visits_key, *visit_ids))

    # ==========================================================================
    # Tab Aggregates
    # ==========================================================================

    def get_tab_aggregates(self) -> list[TabAggregate]:
        aggregates = []
        for tab_id, raw in self._client.hgetall(self._aggregates_key).items():
            try:
                aggregates.append(TabAggregate.model_validate_json(raw))
            except ValidationError as e:
                logger.warning("Skipping unreadable tab aggregate %s: %s", tab_id, e)
        aggregates.sort(key=lambda a: a.tab_id)
        return aggregates

    def save_tab_aggregates(self, aggregates: list[TabAggregate]) -> None:
        if not aggregates:
            return
        mapping = {str(a.tab_id): a.model_dump_json(by_alias=True) for a in aggregates}
        self._execute_pipeline_with_retry(
            lambda pipe: pipe.hset(self._aggregates_key, mapping=mapping)
        )

    def delete_tab_aggregates(self, tab_ids: list[int]) -> int:
        if not tab_ids:
            return 0
        return int(self._client.hdel(self._aggregates_key, *[str(t) for t in tab_ids]))

    # ==========================================================================
    # Active Visit
    # ==========================================================================

    def get_active_visit(self) -> PageVisit | None:
        raw = self._client.get(self._active_key)
        if not raw:
            return None
        try:
            return PageVisit.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable active visit: %s", e)
            return None

    def set_active_visit(self, visit: PageVisit | None) -> None:
        if visit is None:
            self._client.delete(self._active_key)
        else:
            self._client.set(self._active_key, visit.model_dump_json(by_alias=True))

    # ==========================================================================
    # Aggregation Commit
    # ==========================================================================

    def commit_aggregation(
        self,
        aggregates: list[TabAggregate],
        active_visit: PageVisit | None,
        applied_event_ids: list[str],
    ) -> None:
        """Write aggregates, pointer and applied ids in one MULTI/EXEC."""

        def build(pipe):
            if aggregates:
                mapping = {str(a.tab_id): a.model_dump_json(by_alias=True) for a in aggregates}
                pipe.hset(self._aggregates_key, mapping=mapping)
            if active_visit is None:
                pipe.delete(self._active_key)
            else:
                pipe.set(self._active_key, active_visit.model_dump_json(by_alias=True))
            if applied_event_ids:
                pipe.sadd(self._applied_key, *applied_event_ids)

        self._execute_pipeline_with_retry(build)

    def get_applied_event_ids(self) -> set[str]:
        return set(self._client.smembers(self._applied_key))

    def clear_applied_event_ids(self, event_ids: list[str]) -> int:
        if not event_ids:
            return 0
        return int(self._client.srem(self._applied_key, *event_ids))

    # ==========================================================================
    # Singletons
    # ==========================================================================

    def get_sync_state(self) -> dict:
        return {
            field: json.loads(value)
            for field, value in self._client.hgetall(self._sync_state_key).items()
        }

    def save_sync_state(self, state: dict) -> None:
        if not state:
            return
        mapping = {field: json.dumps(value) for field, value in state.items()}
        self._client.hset(self._sync_state_key, mapping=mapping)

    def get_heartbeats(self) -> list[dict]:
        raw = self._client.get(self._heartbeats_key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable heartbeat buffer")
            return []
        return data if isinstance(data, list) else []

    def save_heartbeats(self, heartbeats: list[dict]) -> None:
        self._client.set(self._heartbeats_key, json.dumps(heartbeats))

    def get_value(self, key: str) -> str | None:
        return self._client.get(self._meta_key(key))

    def set_value(self, key: str, value: str) -> None:
        self._client.set(self._meta_key(key), value)

    def clear_all(self) -> int:
        keys = [
            self._visits_key,
            self._aggregates_key,
            self._active_key,
            self._applied_key,
            self._sync_state_key,
            self._heartbeats_key,
        ]
        keys.extend(self._client.scan_iter(self._meta_key("*")))
        return int(self._client.delete(*keys))
