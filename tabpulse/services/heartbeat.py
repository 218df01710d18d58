# ==============================================================================
# Heartbeat Sampler
# ==============================================================================
"""
Timer-driven engagement sampler.

Every interval the sampler asks the browser state probe for the idle state,
the focused tab and window focus, computes an EngagementVerdict and records a
synthetic HEARTBEAT event through the same triage path as native events.

States:
    stopped --init()--> running --stop()--> stopped

The sampler does not own a thread. The runner calls poll() often (every
second) and the sampler fires a tick once its next due time has passed.
ensure_running() is the watchdog: if the host process was suspended and more
than twice the interval has passed since the last sample, it re-arms the
timer and samples immediately.

A ring buffer of the most recent samples backs the local statistics and is
persisted every persist_every samples so history survives restarts.
"""

import logging
from collections import Counter, deque
from collections.abc import Callable

from pydantic import ValidationError

from tabpulse.base.aggregate_store import AggregateStore
from tabpulse.base.collaborators import BrowserStateProbe
from tabpulse.core.engagement import calculate_engagement
from tabpulse.core.models import EventType, HeartbeatSample, IdleState
from tabpulse.services.events import EventRecorder
from tabpulse.utils.clock import MS_PER_SECOND, now_ms
from tabpulse.utils.single_flight import SingleFlight

logger = logging.getLogger(__name__)


class HeartbeatSampler:
    """Samples engagement on a fixed interval into the event log."""

    def __init__(
        self,
        probe: BrowserStateProbe,
        recorder: EventRecorder,
        store: AggregateStore,
        interval_seconds: int = 30,
        idle_threshold_seconds: int = 60,
        buffer_size: int = 100,
        persist_every: int = 10,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            probe: Source of idle state, focused tab and window focus
            recorder: Triage + event log writer
            store: Where the ring buffer is persisted
            interval_seconds: Seconds between samples
            idle_threshold_seconds: Seconds without input before idle
            buffer_size: Ring buffer capacity
            persist_every: Persist the buffer every N samples
            clock: Source of epoch-millisecond timestamps
        """
        self._probe = probe
        self._recorder = recorder
        self._store = store
        self._interval_ms = interval_seconds * MS_PER_SECOND
        self._idle_threshold_seconds = idle_threshold_seconds
        self._persist_every = max(persist_every, 1)
        self._clock = clock

        self._buffer: deque[HeartbeatSample] = deque(maxlen=max(buffer_size, 1))
        self._guard = SingleFlight("heartbeat")
        self._running = False
        self._next_due: int | None = None
        self._last_sample_at = 0
        self._since_persist = 0

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    @property
    def running(self) -> bool:
        return self._running

    @property
    def last_sample_at(self) -> int:
        return self._last_sample_at

    def init(self) -> None:
        """Load the persisted buffer, arm the timer and sample immediately."""
        if self._running:
            logger.info("Heartbeat already running, checking it is alive")
            self.ensure_running()
            return

        self.load()
        self._running = True
        logger.info(
            "Heartbeat started: every %ds, idle threshold %ds",
            self._interval_ms // MS_PER_SECOND,
            self._idle_threshold_seconds,
        )
        self._restart()

    def stop(self) -> None:
        """Disarm the timer and persist the buffer."""
        if not self._running:
            return
        self._running = False
        self._next_due = None
        self.persist()
        logger.info("Heartbeat stopped")

    def ensure_running(self) -> bool:
        """
        Watchdog: restart the timer if it has gone dormant.

        Returns:
            True if the timer was restarted
        """
        if not self._running:
            return False

        since_last = self._clock() - self._last_sample_at
        if since_last > 2 * self._interval_ms or self._next_due is None:
            logger.warning(
                "Heartbeat dormant for %ds, restarting", since_last // MS_PER_SECOND
            )
            self._restart()
            return True
        return False

    def poll(self, now: int | None = None) -> bool:
        """
        Fire a tick if one is due.

        Returns:
            True if a sample was taken
        """
        if not self._running or self._next_due is None:
            return False
        now = now if now is not None else self._clock()
        if now < self._next_due:
            return False
        return self.tick()

    def _restart(self) -> None:
        self._next_due = self._clock()
        self.tick()

    # ==========================================================================
    # Sampling
    # ==========================================================================

    def tick(self) -> bool:
        """
        Take one sample. Overlapping ticks are skipped.

        Returns:
            True if a sample was taken
        """
        with self._guard.hold() as acquired:
            if not acquired:
                logger.debug("Heartbeat tick already in progress, skipping")
                return False
            try:
                self._sample()
                return True
            except Exception:
                logger.exception("Failed to generate heartbeat")
                return False
            finally:
                self._next_due = self._clock() + self._interval_ms

    def _sample(self) -> HeartbeatSample:
        now = self._clock()
        self._last_sample_at = now

        idle_state = self._probe.query_idle_state(self._idle_threshold_seconds)
        tab = self._probe.get_active_tab()
        window_focused = self._probe.is_window_focused()
        audible = bool(tab and tab.audible)
        verdict = calculate_engagement(idle_state, audible, window_focused)

        self._recorder.record_signal(
            EventType.HEARTBEAT,
            tab.tab_id if tab else 0,
            tab.url if tab else "",
            timestamp=now,
            idle_state=idle_state,
            audible=audible,
            window_focused=window_focused,
            engagement=verdict,
        )

        sample = HeartbeatSample(
            timestamp=now,
            tab_id=tab.tab_id if tab else None,
            url=tab.url if tab else "",
            idle_state=idle_state,
            audible=audible,
            window_focused=window_focused,
            engagement=verdict,
        )
        self._buffer.append(sample)
        logger.debug(
            "Heartbeat: %s engaged=%s (%s)", idle_state.value, verdict.is_engaged, verdict.reason.value
        )

        self._since_persist += 1
        if self._since_persist >= self._persist_every:
            self.persist()
        return sample

    # ==========================================================================
    # Buffer and Statistics
    # ==========================================================================

    def load(self) -> None:
        """Replace the in-memory ring buffer with the persisted one."""
        self._buffer.clear()
        loaded = 0
        for raw in self._store.get_heartbeats():
            try:
                self._buffer.append(HeartbeatSample.model_validate(raw))
                loaded += 1
            except ValidationError:
                logger.debug("Skipping unreadable persisted heartbeat")
        logger.info("Loaded %d heartbeats from storage", loaded)

    def persist(self) -> None:
        try:
            self._store.save_heartbeats(
                [sample.model_dump(by_alias=True, mode="json") for sample in self._buffer]
            )
            self._since_persist = 0
        except Exception as e:
            logger.error("Failed to save heartbeats: %s", e)

    def recent(self, count: int = 10) -> list[HeartbeatSample]:
        if count <= 0:
            return []
        return list(self._buffer)[-count:]

    def clear(self) -> None:
        self._buffer.clear()
        self._since_persist = 0
        self._store.save_heartbeats([])
        logger.info("Heartbeat data cleared")

    def stats(self) -> dict:
        """Engagement statistics over the ring buffer."""
        total = len(self._buffer)
        engaged = sum(1 for sample in self._buffer if sample.engagement.is_engaged)
        idle_states = Counter({state.value: 0 for state in IdleState})
        idle_states.update(sample.idle_state.value for sample in self._buffer)
        last = self._buffer[-1] if self._buffer else None

        return {
            "running": self._running,
            "totalHeartbeats": total,
            "engagedCount": engaged,
            "engagementRate": engaged / total if total else 0.0,
            "idleStates": dict(idle_states),
            "audibleCount": sum(1 for sample in self._buffer if sample.audible),
            "lastVerdict": last.engagement.model_dump(by_alias=True, mode="json") if last else None,
            "lastSampleAt": last.timestamp if last else None,
        }
