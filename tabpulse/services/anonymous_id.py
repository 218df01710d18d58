# ==============================================================================
# Anonymous Client Id
# ==============================================================================
"""
Persistent per-installation UUID stamped on events and sync uploads.
"""

import logging
import uuid

from tabpulse.base.aggregate_store import AggregateStore

logger = logging.getLogger(__name__)

ANONYMOUS_ID_KEY = "anonymous_client_id"


def get_or_create_anonymous_id(store: AggregateStore) -> str:
    """
    Get the anonymous client id, creating and persisting one on first use.

    Args:
        store: Aggregate store holding the id

    Returns:
        UUID4 string
    """
    existing = store.get_value(ANONYMOUS_ID_KEY)
    if existing:
        return existing

    client_id = str(uuid.uuid4())
    store.set_value(ANONYMOUS_ID_KEY, client_id)
    logger.info("Created anonymous client id %s", client_id)
    return client_id
