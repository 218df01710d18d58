# ==============================================================================
# Service Runner
# ==============================================================================
"""
Long-running tabpulse service, started by 'tabpulse run'.

Startup:
    1. Drain pending events left by the previous process
    2. Close any visit the previous process left open
    3. Start the heartbeat sampler (samples immediately)

Then one loop drives every periodic task from a Scheduler:

    heartbeat   every 1s      poll the sampler; it samples when due
    watchdog    every 60s     restart the sampler if it went dormant
    aggregate   every 5m      one aggregation pass
    sync        every 5m      upload unsynced records (when authenticated)
    cleanup     every 24h     retention purges

On SIGTERM/SIGINT the loop exits, the heartbeat buffer is persisted and a
final aggregation pass runs so the event log is left drained.
"""

import logging
import os

from tabpulse.base.runner import BaseRunner
from tabpulse.services.factory import Services, build_services
from tabpulse.services.scheduler import Scheduler
from tabpulse.utils.config import Settings, get_settings
from tabpulse.utils.paths import SERVICE_PID_FILE

logger = logging.getLogger(__name__)

HEARTBEAT_POLL_SECONDS = 1.0


class ServiceRunner(BaseRunner):
    """Runs the heartbeat, aggregation, sync and cleanup drivers."""

    def __init__(
        self,
        settings: Settings | None = None,
        services: Services | None = None,
        write_pid_file: bool = True,
    ):
        self._settings = settings or get_settings()
        super().__init__(log_level=self._settings.log_level, log_file=self._settings.log_file)
        self._services = services
        self._write_pid_file = write_pid_file
        self._scheduler = Scheduler()

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    def _run(self) -> None:
        from tabpulse import __version__

        if self._services is None:
            self._services = build_services(self._settings)
        services = self._services

        if self._write_pid_file:
            SERVICE_PID_FILE.write_text(str(os.getpid()))

        logger.info(
            "tabpulse service started | v%s | client %s",
            __version__,
            services.anonymous_client_id,
        )

        self._startup(services)
        self._schedule(services)

        while not self.shutdown_requested:
            self._scheduler.run_pending()
            self._sleep(min(self._scheduler.seconds_until_next(), HEARTBEAT_POLL_SECONDS))

    def _startup(self, services: Services) -> None:
        result = services.aggregator.process_pending()
        if result.processed_count:
            logger.info("Startup aggregation processed %d pending events", result.processed_count)
        services.aggregator.recover_active_visit()
        services.sampler.init()

    def _schedule(self, services: Services) -> None:
        settings = self._settings
        self._scheduler.add(
            "heartbeat", HEARTBEAT_POLL_SECONDS, services.sampler.poll, delay_seconds=0
        )
        self._scheduler.add(
            "watchdog", settings.heartbeat.watchdog_seconds, services.sampler.ensure_running
        )
        self._scheduler.add(
            "aggregate",
            settings.aggregation.interval_minutes * 60,
            services.aggregator.process_pending,
        )
        self._scheduler.add(
            "sync", settings.sync.interval_minutes * 60, services.sync_manager.sync_to_backend
        )
        self._scheduler.add(
            "cleanup", settings.cleanup.interval_hours * 3600, services.cleanup.run_if_due
        )

    def _cleanup(self) -> None:
        services = self._services
        if services is not None:
            services.sampler.stop()
            try:
                services.aggregator.process_pending()
            except Exception:
                logger.exception("Final aggregation pass failed")

        if self._write_pid_file:
            SERVICE_PID_FILE.unlink(missing_ok=True)
        logger.info("tabpulse service shutdown complete.")
