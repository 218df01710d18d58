# ==============================================================================
# Tab Activity Domain Models
# ==============================================================================
"""
Pydantic models for tab events, page visits and tab aggregates.

These models are used for:
- Validating raw events read back from the event log
- Serializing visits and aggregates for Valkey storage and sync uploads
- Type safety throughout the application

All serialized forms use camelCase keys (tabId, startedAt, ...) so records
read the same on the wire as they do in storage. Times are epoch milliseconds.

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from tabpulse.core.errors import MalformedEventError

CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class EventType(str, Enum):
    """Tab lifecycle and engagement event types."""

    CREATE = "CREATE"
    ACTIVATE = "ACTIVATE"
    NAVIGATE = "NAVIGATE"
    CLOSE = "CLOSE"
    HEARTBEAT = "HEARTBEAT"


class IdleState(str, Enum):
    """System idle state as reported by the browser."""

    ACTIVE = "active"
    IDLE = "idle"
    LOCKED = "locked"


class EngagementReason(str, Enum):
    """Why a heartbeat was (or was not) counted as engaged time."""

    ACTIVE = "active"
    AUDIO = "audio"
    IDLE = "idle"
    LOCKED = "locked"


class SyncStatus(str, Enum):
    """Upload state of an aggregated record."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


# Resume reason recorded when an idle period is cut short by the visit ending
VISIT_ENDED = "visit_ended"


# ==============================================================================
# Engagement
# ==============================================================================


class EngagementVerdict(BaseModel):
    """
    Whether the user is actually paying attention at a heartbeat.

    Attributes:
        is_engaged: True when the heartbeat counts towards active time
        reason: One of active, audio, idle, locked
        confidence: How sure the verdict is, 0..1
    """

    model_config = {**CAMEL_CONFIG, "frozen": True}

    is_engaged: bool
    reason: EngagementReason
    confidence: float = Field(..., ge=0.0, le=1.0)


# ==============================================================================
# Core Events
# ==============================================================================


class _EventBase(BaseModel):
    """Fields shared by every event variant."""

    model_config = {**CAMEL_CONFIG, "frozen": True}

    id: str = Field(..., description="Unique event id")
    timestamp: int = Field(..., description="Unix timestamp in milliseconds")
    tab_id: int = Field(..., description="Browser tab identifier")
    url: str = Field(default="", description="Page URL (may be empty for CLOSE)")
    domain: str = Field(default="", description="Hostname derived from url, www. stripped")
    anonymous_client_id: str | None = Field(default=None, description="Installation id")

    @property
    def event_time(self) -> datetime:
        """Convert timestamp to datetime object."""
        return datetime.fromtimestamp(self.timestamp / 1000.0)

    def to_record(self) -> dict:
        """Serialize event for event log storage."""
        return self.model_dump(by_alias=True, mode="json")


class LifecycleEvent(_EventBase):
    """CREATE, ACTIVATE, NAVIGATE or CLOSE signal for a tab."""

    type: Literal["CREATE", "ACTIVATE", "NAVIGATE", "CLOSE"]


class HeartbeatEvent(_EventBase):
    """Periodic engagement sample for the focused tab."""

    type: Literal["HEARTBEAT"] = "HEARTBEAT"
    idle_state: IdleState
    audible: bool = False
    window_focused: bool = False
    engagement: EngagementVerdict


CoreEvent = Annotated[LifecycleEvent | HeartbeatEvent, Field(discriminator="type")]

_CORE_EVENT_ADAPTER: TypeAdapter = TypeAdapter(CoreEvent)


def parse_event(data: dict) -> LifecycleEvent | HeartbeatEvent:
    """
    Parse a raw event record into its typed variant.

    Args:
        data: Event dict as stored in the event log (camelCase or snake_case keys)

    Returns:
        LifecycleEvent or HeartbeatEvent, chosen by the "type" field

    Raises:
        MalformedEventError: If the record does not validate
    """
    event_id = data.get("id") if isinstance(data, dict) else None
    try:
        return _CORE_EVENT_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise MalformedEventError(
            f"invalid event: {e.error_count()} validation error(s)", event_id=event_id
        ) from e


# ==============================================================================
# Page Metadata and Categories
# ==============================================================================


class PageMetadata(BaseModel):
    """
    Page signals extracted by the content script.

    Unknown keys are ignored so newer extractors do not break categorization.
    """

    model_config = {**CAMEL_CONFIG, "extra": "ignore"}

    title: str = ""
    schema_type: str | None = None
    schema_data: dict[str, Any] = Field(default_factory=dict)
    og_type: str | None = None
    keywords: str = ""
    article_section: str | None = None
    description: str = ""
    has_code_editor: bool = False
    has_feed: bool = False
    has_video: bool = False
    is_editing: bool = False
    word_count: int = 0

    @field_validator("title", "keywords", "description", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v) for v in value)
        return value

    @field_validator("schema_type", mode="before")
    @classmethod
    def _first_schema_type(cls, value: Any) -> Any:
        # JSON-LD allows "@type": ["Article", "NewsArticle"]
        if isinstance(value, (list, tuple)):
            return value[0] if value else None
        return value

    @field_validator("schema_data", mode="before")
    @classmethod
    def _coerce_schema_data(cls, value: Any) -> Any:
        return value or {}


class CategoryResult(BaseModel):
    """Outcome of categorizing a visit."""

    model_config = {**CAMEL_CONFIG, "frozen": True}

    category: str
    confidence: float
    method: str


# ==============================================================================
# Page Visits
# ==============================================================================


class IdlePeriod(BaseModel):
    """A stretch of a visit during which the user was not engaged."""

    model_config = CAMEL_CONFIG

    start: int
    end: int | None = None
    duration_ms: int | None = None
    reason: str
    resume_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    def close(self, timestamp: int, resume_reason: str) -> None:
        self.end = max(timestamp, self.start)
        self.duration_ms = self.end - self.start
        self.resume_reason = resume_reason


class PageVisit(BaseModel):
    """
    One continuous viewing of one URL in one tab.

    A visit is open (ended_at is None) while it is the active visit, and
    closed once superseded by another ACTIVATE/NAVIGATE or by CLOSE.

    Attributes:
        id: Deterministic id "pv_{started_at}_{tab_id}"
        active_duration_ms: Engaged time accrued from heartbeats
        idle_periods: Ordered idle stretches, at most one open at a time
        engagement_rate: active_duration_ms / duration, clamped to [0, 1]
    """

    model_config = CAMEL_CONFIG

    id: str
    tab_id: int
    url: str
    domain: str
    title: str = ""
    started_at: int
    ended_at: int | None = None
    duration_ms: int | None = None
    active_duration_ms: int = 0
    idle_periods: list[IdlePeriod] = Field(default_factory=list)
    engagement_rate: float = 0.0
    last_heartbeat: int | None = None
    category: str = "unclassified"
    category_confidence: float = 0.0
    category_method: str = "unclassified"
    metadata: PageMetadata | None = None
    anonymous_client_id: str | None = None
    synced: bool = False
    synced_at: int | None = None
    sync_status: SyncStatus = SyncStatus.PENDING

    @staticmethod
    def make_id(tab_id: int, started_at: int) -> str:
        """Build the deterministic visit id for (tab_id, started_at)."""
        return f"pv_{started_at}_{tab_id}"

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def open_idle_period(self) -> IdlePeriod | None:
        if self.idle_periods and self.idle_periods[-1].is_open:
            return self.idle_periods[-1]
        return None

    def elapsed_ms(self, now: int | None = None) -> int:
        """Wall-clock length of the visit, using now for open visits."""
        if self.duration_ms is not None:
            return self.duration_ms
        if now is None:
            return 0
        return max(now - self.started_at, 0)

    def start_idle(self, timestamp: int, reason: str) -> None:
        """Open an idle period unless one is already open."""
        if self.open_idle_period is None:
            self.idle_periods.append(IdlePeriod(start=timestamp, reason=reason))

    def end_idle(self, timestamp: int, resume_reason: str) -> None:
        """Close the open idle period, if any."""
        period = self.open_idle_period
        if period is not None:
            period.close(timestamp, resume_reason)

    def add_active_time(self, duration_ms: int) -> None:
        self.active_duration_ms += max(duration_ms, 0)

    def update_engagement_rate(self, now: int | None = None) -> float:
        """Recompute engagement_rate against the visit's elapsed time."""
        elapsed = self.elapsed_ms(now)
        if elapsed <= 0:
            self.engagement_rate = 1.0 if self.active_duration_ms > 0 else 0.0
        else:
            self.engagement_rate = min(max(self.active_duration_ms / elapsed, 0.0), 1.0)
        return self.engagement_rate

    def complete(self, timestamp: int) -> None:
        """
        Close the visit at timestamp.

        Sets ended_at and duration_ms, flushes any open idle period with
        resume reason "visit_ended" and computes the final engagement rate.
        """
        self.ended_at = max(timestamp, self.started_at)
        self.duration_ms = self.ended_at - self.started_at
        self.end_idle(self.ended_at, VISIT_ENDED)
        self.update_engagement_rate()

    def apply_category(self, result: CategoryResult) -> None:
        self.category = result.category
        self.category_confidence = result.confidence
        self.category_method = result.method

    def mark_synced(self, timestamp: int) -> None:
        self.synced = True
        self.synced_at = timestamp
        self.sync_status = SyncStatus.SYNCED

    def mark_failed(self) -> None:
        self.sync_status = SyncStatus.FAILED

    def to_record(self) -> dict:
        """Serialize visit for Valkey storage."""
        return self.model_dump(by_alias=True, mode="json")

    def to_sync_record(self) -> dict:
        """Serialize visit for the sync API (page metadata omitted)."""
        return self.model_dump(by_alias=True, mode="json", exclude={"metadata"})


# ==============================================================================
# Tab Aggregates
# ==============================================================================


class TabAggregate(BaseModel):
    """
    Rollup for one browser tab across its lifetime.

    Created on the first event for a tab, closed (not deleted) on CLOSE.
    """

    model_config = CAMEL_CONFIG

    tab_id: int
    start_time: int
    last_active_time: int
    total_active_duration_ms: int = 0
    domain_durations: dict[str, int] = Field(default_factory=dict)
    page_count: int = 0
    current_url: str | None = None
    current_domain: str | None = None
    is_open: bool = True
    closed_at: int | None = None
    anonymous_client_id: str | None = None
    synced: bool = False
    synced_at: int | None = None
    sync_status: SyncStatus = SyncStatus.PENDING

    @classmethod
    def create(
        cls, tab_id: int, timestamp: int, anonymous_client_id: str | None = None
    ) -> "TabAggregate":
        """Create an empty open aggregate for a tab."""
        return cls(
            tab_id=tab_id,
            start_time=timestamp,
            last_active_time=timestamp,
            anonymous_client_id=anonymous_client_id,
        )

    @property
    def most_visited_domain(self) -> str | None:
        """Domain with the most accumulated time (None when no domains seen)."""
        if not self.domain_durations:
            return None
        return max(self.domain_durations.items(), key=lambda item: item[1])[0]

    @property
    def average_page_duration_ms(self) -> int:
        if self.page_count == 0:
            return 0
        return self.total_active_duration_ms // self.page_count

    def update_activity(self, domain: str, elapsed_ms: int, url: str, timestamp: int) -> None:
        """
        Record a page view in this tab.

        Increments page_count, adds elapsed_ms to the total and to the
        domain bucket, and moves the current URL/domain and last-active time.
        """
        self.page_count += 1
        if domain:
            self.domain_durations.setdefault(domain, 0)
        self.add_active_time(domain, elapsed_ms)
        self.current_url = url
        self.current_domain = domain or None
        self.last_active_time = max(self.last_active_time, timestamp)

    def add_active_time(self, domain: str, duration_ms: int) -> None:
        if duration_ms <= 0:
            return
        self.total_active_duration_ms += duration_ms
        if domain:
            self.domain_durations[domain] = self.domain_durations.get(domain, 0) + duration_ms

    def close(self, timestamp: int) -> None:
        self.is_open = False
        self.closed_at = timestamp
        self.last_active_time = max(self.last_active_time, timestamp)

    def mark_synced(self, timestamp: int) -> None:
        self.synced = True
        self.synced_at = timestamp
        self.sync_status = SyncStatus.SYNCED

    def mark_failed(self) -> None:
        self.sync_status = SyncStatus.FAILED

    def to_record(self) -> dict:
        """Serialize aggregate for Valkey storage."""
        return self.model_dump(by_alias=True, mode="json")

    def to_sync_record(self) -> dict:
        """Serialize aggregate for the sync API, with derived statistics."""
        record = self.to_record()
        record["statistics"] = {
            "mostVisitedDomain": self.most_visited_domain,
            "averagePageDurationMs": self.average_page_duration_ms,
            "domainCount": len(self.domain_durations),
        }
        return record


# ==============================================================================
# Heartbeat Samples and Browser State
# ==============================================================================


class ActiveTab(BaseModel):
    """The currently focused tab, as reported by the browser."""

    model_config = CAMEL_CONFIG

    tab_id: int
    url: str = ""
    title: str = ""
    audible: bool = False


class HeartbeatSample(BaseModel):
    """One entry in the heartbeat ring buffer."""

    model_config = CAMEL_CONFIG

    timestamp: int
    tab_id: int | None = None
    url: str = ""
    idle_state: IdleState
    audible: bool = False
    window_focused: bool = False
    engagement: EngagementVerdict
