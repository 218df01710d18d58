# ==============================================================================
# Path Constants and Utilities
# ==============================================================================
"""
Centralized path constants for the service PID file, log file and project root.
"""

from pathlib import Path

# ==============================================================================
# Temporary File Paths
# ==============================================================================

SERVICE_PID_FILE = Path("/tmp/tabpulse.pid")
SERVICE_LOG_FILE = Path("/tmp/tabpulse.log")


# ==============================================================================
# Project Structure Paths
# ==============================================================================


def get_project_root() -> Path:
    """
    Get the project root directory.

    Searches upward from the current file for a directory containing
    pyproject.toml. Falls back to current working directory if not found.

    Returns:
        Path to the project root directory
    """
    current = Path(__file__).parent.parent.parent  # utils/paths.py -> tabpulse -> project
    if (current / "pyproject.toml").exists():
        return current
    return Path.cwd()
