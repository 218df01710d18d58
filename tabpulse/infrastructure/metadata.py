# ==============================================================================
# Page Metadata Cache (Valkey/Redis)
# ==============================================================================
"""
Valkey/Redis implementation of the MetadataProvider interface.

Metadata arrives from the content script (via `tabpulse ingest`) and is
cached per URL with a TTL (24 hours by default), so the aggregator can look
it up when it opens a visit.
"""

import hashlib
import logging

import redis
from pydantic import ValidationError

from tabpulse.base.collaborators import MetadataProvider
from tabpulse.core.models import PageMetadata
from tabpulse.infrastructure.valkey import ValkeyAdapter
from tabpulse.utils.config import get_settings

logger = logging.getLogger(__name__)


class ValkeyMetadataProvider(ValkeyAdapter, MetadataProvider):
    """Per-URL metadata cache with expiry."""

    def __init__(
        self,
        client: redis.Redis | None = None,
        prefix: str | None = None,
        ttl_hours: int | None = None,
    ):
        super().__init__(client, prefix)
        hours = ttl_hours if ttl_hours is not None else get_settings().valkey.metadata_ttl_hours
        self._ttl_seconds = hours * 3600

    def _url_key(self, url: str) -> str:
        digest = hashlib.sha1(url.encode("utf-8")).hexdigest()
        return self._key("pagemeta", digest)

    def _parse(self, url: str, raw: str | None) -> PageMetadata | None:
        if not raw:
            return None
        try:
            return PageMetadata.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Ignoring unreadable metadata for %s: %s", url, e)
            return None

    def get_metadata(self, url: str) -> PageMetadata | None:
        if not url:
            return None
        return self._parse(url, self._client.get(self._url_key(url)))

    def get_many(self, urls: list[str]) -> dict[str, PageMetadata]:
        unique = [u for u in dict.fromkeys(urls) if u]
        if not unique:
            return {}

        values = self._client.mget([self._url_key(u) for u in unique])
        result = {}
        for url, raw in zip(unique, values):
            metadata = self._parse(url, raw)
            if metadata is not None:
                result[url] = metadata
        return result

    def put(self, url: str, metadata: PageMetadata) -> None:
        self._client.setex(
            self._url_key(url), self._ttl_seconds, metadata.model_dump_json(by_alias=True)
        )
