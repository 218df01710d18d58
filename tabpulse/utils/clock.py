# ==============================================================================
# Clock Helpers
# ==============================================================================
"""
Epoch-millisecond time helpers used across services.
"""

import time
from datetime import datetime

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * MS_PER_SECOND)


def format_ms(timestamp: int | None) -> str:
    """Render an epoch-millisecond timestamp for display ("-" when unset)."""
    if not timestamp:
        return "-"
    return datetime.fromtimestamp(timestamp / MS_PER_SECOND).strftime("%Y-%m-%d %H:%M:%S")
