# ==============================================================================
# Periodic Task Scheduler
# ==============================================================================
"""
Minimal cooperative scheduler for the service runner's periodic drivers.

Tasks run on the caller's thread, one at a time, from run_pending(). A task
that raises is logged and rescheduled; it never stops the other tasks.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class PeriodicTask:
    """A named action fired every interval_seconds."""

    name: str
    interval_seconds: float
    action: Callable[[], object]
    next_run: float
    runs: int = 0
    failures: int = 0


class Scheduler:
    """Fires registered tasks when their next run time has passed."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._tasks: dict[str, PeriodicTask] = {}

    @property
    def tasks(self) -> list[PeriodicTask]:
        return list(self._tasks.values())

    def add(
        self,
        name: str,
        interval_seconds: float,
        action: Callable[[], object],
        delay_seconds: float | None = None,
    ) -> PeriodicTask:
        """
        Register a task.

        Args:
            name: Unique task name (used in logs)
            interval_seconds: Seconds between runs
            action: Zero-argument callable
            delay_seconds: Seconds before the first run (defaults to one interval)
        """
        if interval_seconds <= 0:
            raise ValueError(f"interval for task {name!r} must be positive")
        delay = interval_seconds if delay_seconds is None else delay_seconds
        task = PeriodicTask(
            name=name,
            interval_seconds=interval_seconds,
            action=action,
            next_run=self._clock() + delay,
        )
        self._tasks[name] = task
        logger.debug("Scheduled %s every %.0fs", name, interval_seconds)
        return task

    def run_pending(self) -> list[str]:
        """
        Run every due task once.

        Returns:
            Names of the tasks that ran
        """
        ran = []
        for task in list(self._tasks.values()):
            if self._clock() < task.next_run:
                continue
            try:
                task.action()
            except Exception:
                task.failures += 1
                logger.exception("Periodic task %s failed", task.name)
            finally:
                task.runs += 1
                task.next_run = self._clock() + task.interval_seconds
            ran.append(task.name)
        return ran

    def seconds_until_next(self) -> float:
        """Seconds until the earliest task is due (0 when one is overdue)."""
        if not self._tasks:
            return 1.0
        earliest = min(task.next_run for task in self._tasks.values())
        return max(earliest - self._clock(), 0.0)
