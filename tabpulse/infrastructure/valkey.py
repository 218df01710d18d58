# ==============================================================================
# Valkey Client and Shared Adapter Plumbing
# ==============================================================================
"""
Valkey/Redis connection helpers shared by every storage adapter.

Provides:
- get_valkey_client() with socket timeouts, retries and health checks
- check_valkey_connection() for status commands
- ValkeyAdapter base class with key prefixing and retried pipelines
"""

import logging
from collections.abc import Callable

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError
from redis.retry import Retry

from tabpulse.utils.config import get_settings
from tabpulse.utils.retry import REDIS_RETRY_EXCEPTIONS, VALKEY_RETRIES, retry_standard

logger = logging.getLogger(__name__)


def get_valkey_client() -> redis.Redis:
    """
    Get a Valkey/Redis client connection.

    Configured with:
    - 10 second socket timeouts for fast failure detection
    - 10 automatic retries with exponential backoff for transient failures
    - Health check interval to keep connections alive

    Returns:
        redis.Redis client instance
    """
    settings = get_settings()

    retry = Retry(ExponentialBackoff(cap=32, base=1), retries=VALKEY_RETRIES)

    return redis.from_url(
        settings.valkey.url,
        decode_responses=True,
        socket_timeout=10,
        socket_connect_timeout=10,
        retry=retry,
        retry_on_error=[RedisTimeoutError, RedisConnectionError],
        health_check_interval=30,
    )


def check_valkey_connection() -> bool:
    """
    Check if Valkey is reachable.

    Uses a shorter timeout (5 seconds) since this is just a health check.

    Returns:
        True if Valkey responds to ping, False otherwise
    """
    try:
        client = redis.from_url(
            get_settings().valkey.url,
            decode_responses=True,
            socket_timeout=5,
            socket_connect_timeout=5,
        )
        client.ping()
        client.close()
        return True
    except redis.RedisError:
        return False


class ValkeyAdapter:
    """
    Common base for Valkey-backed adapters.

    Every key is namespaced under the configured prefix ("tabpulse" by
    default) so a shared Valkey database can be reset selectively.
    """

    def __init__(self, client: redis.Redis | None = None, prefix: str | None = None):
        """
        Args:
            client: Redis client instance. If None, creates a new connection.
            prefix: Key prefix. If None, uses settings.
        """
        self._client = client or get_valkey_client()
        self._prefix = prefix or get_settings().valkey.key_prefix

    @property
    def client(self) -> redis.Redis:
        """Get the underlying Redis client."""
        return self._client

    def _key(self, *parts: str) -> str:
        return ":".join((self._prefix, *parts))

    def _execute_pipeline_with_retry(self, pipeline_builder: Callable) -> list:
        """
        Execute a transactional Redis pipeline with retry logic.

        Args:
            pipeline_builder: Callable that takes a pipeline and adds commands to it

        Returns:
            List of results from pipeline execution
        """

        @retry_standard(REDIS_RETRY_EXCEPTIONS, logger)
        def _execute():
            pipe = self._client.pipeline(transaction=True)
            pipeline_builder(pipe)
            return pipe.execute()

        return _execute()
