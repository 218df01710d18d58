# ==============================================================================
# Single-Flight Guard
# ==============================================================================
"""
Guard that turns overlapping invocations of a periodic operation into no-ops.

Without a client the guard covers one process. With a Valkey client it also
takes a non-blocking redis-py lock, so `tabpulse aggregate` or `tabpulse sync`
started while `tabpulse run` is live skip instead of folding or uploading the
same records twice.

Usage:
    guard = SingleFlight("sync", client=client, key="tabpulse:lock:sync")
    with guard.hold() as acquired:
        if not acquired:
            return {"success": False, "error": "already syncing"}
        ...
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import redis
from redis.exceptions import LockError

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 600


class SingleFlight:
    """
    Atomic check-and-set "is running" flag.

    The flag is released when the holding block exits, whether it returns
    normally or raises. The Valkey lock expires after timeout seconds so a
    crashed holder cannot block other processes forever.
    """

    def __init__(
        self,
        name: str,
        client: redis.Redis | None = None,
        key: str | None = None,
        timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ):
        """
        Args:
            name: Guard name used in log messages
            client: Valkey client for the shared lock. If None, in-process only.
            key: Lock key. If None, uses name.
            timeout: Seconds before an unreleased shared lock expires
        """
        self.name = name
        self._lock = threading.Lock()
        self._shared = None
        if client is not None:
            self._shared = client.lock(key or name, timeout=timeout, blocking=False)

    @property
    def running(self) -> bool:
        """True while some caller, in this process or another, holds the guard."""
        if self._lock.locked():
            return True
        return self._shared is not None and self._shared.locked()

    def try_acquire(self) -> bool:
        if not self._lock.acquire(blocking=False):
            return False
        if self._shared is not None and not self._shared.acquire():
            logger.debug("Guard %s is held by another process", self.name)
            self._lock.release()
            return False
        return True

    def release(self) -> None:
        try:
            if self._shared is not None:
                try:
                    self._shared.release()
                except LockError as e:
                    logger.warning("Guard %s lock expired before release: %s", self.name, e)
        finally:
            self._lock.release()

    @contextmanager
    def hold(self) -> Iterator[bool]:
        """
        Try to take the guard for the duration of a with-block.

        Yields:
            True if this caller holds the guard, False if another caller does
        """
        acquired = self.try_acquire()
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
