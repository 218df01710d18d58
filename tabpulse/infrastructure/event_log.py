# ==============================================================================
# Event Log Implementation (Valkey/Redis)
# ==============================================================================
"""
Valkey/Redis implementation of the EventLog interface.

Layout:
    {prefix}:events        hash    event id -> JSON record
    {prefix}:events:by_ts  zset    event id scored by event timestamp

The sorted set is the timestamp index used for age-based expiry and for
returning events in a stable order.
"""

import json
import logging

import redis

from tabpulse.base.event_log import EventLog
from tabpulse.core.models import HeartbeatEvent, LifecycleEvent
from tabpulse.infrastructure.valkey import ValkeyAdapter
from tabpulse.utils.clock import MS_PER_HOUR, now_ms

logger = logging.getLogger(__name__)


class ValkeyEventLog(ValkeyAdapter, EventLog):
    """Valkey/Redis implementation of EventLog."""

    def __init__(self, client: redis.Redis | None = None, prefix: str | None = None):
        super().__init__(client, prefix)
        self._events_key = self._key("events")
        self._index_key = self._key("events", "by_ts")

    def append(self, event: LifecycleEvent | HeartbeatEvent) -> None:
        """Store the event and index it by timestamp."""
        payload = event.model_dump_json(by_alias=True)

        def build_pipeline(pipe):
            pipe.hset(self._events_key, event.id, payload)
            pipe.zadd(self._index_key, {event.id: event.timestamp})

        self._execute_pipeline_with_retry(build_pipeline)

    def get_all(self) -> list[dict]:
        """
        Get every event in timestamp-index order.

        Records that are not valid JSON come back as {"id": ...} only, so the
        aggregator can report and delete them.
        """
        data = self._client.hgetall(self._events_key)
        if not data:
            return []
        scores = dict(self._client.zrange(self._index_key, 0, -1, withscores=True))

        records = []
        for event_id, raw in data.items():
            try:
                record = json.loads(raw)
            except ValueError:
                logger.warning("Event %s is not valid JSON", event_id)
                record = {}
            if not isinstance(record, dict):
                record = {}
            record.setdefault("id", event_id)
            records.append(record)

        def sort_key(record: dict) -> float:
            score = scores.get(record["id"])
            if score is not None:
                return score
            timestamp = record.get("timestamp")
            return float(timestamp) if isinstance(timestamp, (int, float)) else 0.0

        records.sort(key=sort_key)
        return records

    def delete_many(self, event_ids: list[str]) -> int:
        if not event_ids:
            return 0

        results = self._execute_pipeline_with_retry(
            lambda pipe: (
                pipe.hdel(self._events_key, *event_ids),
                pipe.zrem(self._index_key, *event_ids),
            )
        )
        return int(results[0])

    def get_older_than(self, max_age_hours: int, now: int | None = None) -> list[str]:
        cutoff = (now if now is not None else now_ms()) - max_age_hours * MS_PER_HOUR
        return list(self._client.zrangebyscore(self._index_key, "-inf", f"({cutoff}"))

    def count(self) -> int:
        return int(self._client.hlen(self._events_key))

    def clear(self) -> int:
        count = self.count()
        self._client.delete(self._events_key, self._index_key)
        return count
