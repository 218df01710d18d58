# ==============================================================================
# CLI Commands Module
# ==============================================================================
"""
CLI commands for tabpulse.

Commands are organized into separate modules for maintainability:
- shared.py: Common utilities, constants, and helpers
- service.py: Run and stop the long-running service
- pipeline.py: ingest, aggregate, sync and cleanup one-shots
- status.py: Status command showing service and storage health
- heartbeat.py: Engagement statistics
- config.py: Configuration display
- data.py: Reset and export of local data
"""

from tabpulse.cli.shared import (
    BOX_WIDTH,
    SERVICE_LOG_FILE,
    SERVICE_PID_FILE,
    B,
    Box,
    C,
    Colors,
    I,
    Icons,
    get_process_pid,
    get_project_root,
    is_process_running,
    load_services,
    stop_process,
)

__all__ = [
    "BOX_WIDTH",
    "SERVICE_LOG_FILE",
    "SERVICE_PID_FILE",
    "B",
    "Box",
    "C",
    "Colors",
    "I",
    "Icons",
    "get_process_pid",
    "get_project_root",
    "is_process_running",
    "load_services",
    "stop_process",
]
