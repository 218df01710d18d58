# ==============================================================================
# Shared Utilities for CLI Commands
# ==============================================================================
"""
Shared utilities, constants, and helper functions used across CLI command modules.

This module provides:
- ANSI color codes and box-drawing characters
- Service process helpers (PID file)
- Box drawing helpers for formatted output
- Service construction with a friendly error when Valkey is down
"""

import os
import re
import signal
import time
from pathlib import Path
from typing import Optional

import typer

from tabpulse.utils.paths import SERVICE_LOG_FILE, SERVICE_PID_FILE, get_project_root

# ==============================================================================
# Constants
# ==============================================================================

# Box drawing width (unified for all commands)
BOX_WIDTH = 68


# ==============================================================================
# ANSI Colors and Box Drawing
# ==============================================================================


class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    # Colors
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    # Bright colors
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


class Box:
    """Unicode box-drawing characters."""

    H = "─"  # horizontal
    V = "│"  # vertical
    TL = "┌"  # top-left
    TR = "┐"  # top-right
    BL = "└"  # bottom-left
    BR = "┘"  # bottom-right
    LT = "├"  # left-tee
    RT = "┤"  # right-tee


class Icons:
    """Status icons using Unicode symbols."""

    CHECK = "✓"
    CROSS = "✗"
    WARN = "!"
    CIRCLE = "●"
    BULLET = "•"
    ARROW = "→"
    HEART = "♥"
    SYNC = "⇅"
    DATABASE = "◆"
    PLAY = "▶"
    STOP = "□"


# Module-level aliases for convenience
C, B, I = Colors, Box, Icons


__all__ = [
    "BOX_WIDTH",
    "SERVICE_LOG_FILE",
    "SERVICE_PID_FILE",
    "Box",
    "Colors",
    "Icons",
    "B",
    "C",
    "I",
    "get_project_root",
    "get_process_pid",
    "is_process_running",
    "stop_process",
    "load_services",
]


# ==============================================================================
# Process Management Helpers
# ==============================================================================


def get_process_pid(pid_file: Path) -> Optional[int]:
    """Get the PID from a PID file, if the process is still running."""
    if pid_file.exists():
        try:
            pid = int(pid_file.read_text().strip())
            # Check if process is still running
            os.kill(pid, 0)
            return pid
        except (ValueError, ProcessLookupError, PermissionError):
            pid_file.unlink(missing_ok=True)
    return None


def is_process_running(pid_file: Path) -> bool:
    """Check if a process is running based on its PID file."""
    return get_process_pid(pid_file) is not None


def stop_process(pid_file: Path, name: str) -> bool:
    """Stop a process by its PID file. Returns True if stopped."""
    pid = get_process_pid(pid_file)
    if not pid:
        print(f"{C.BRIGHT_YELLOW}{I.STOP} {name} is not running{C.RESET}")
        return False

    print(f"  Stopping {name} (PID: {C.WHITE}{pid}{C.RESET})...")

    try:
        os.kill(pid, signal.SIGTERM)
        # Wait up to 10 seconds for the final aggregation pass to complete
        for _ in range(20):
            time.sleep(0.5)
            try:
                os.kill(pid, 0)
            except ProcessLookupError:
                break
        else:
            print(f"  {name} not responding, force killing...")
            os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass  # Already terminated
    except PermissionError:
        print(f"{C.BRIGHT_RED}{I.CROSS} Permission denied to stop {name}{C.RESET}")
        return False

    pid_file.unlink(missing_ok=True)
    print(f"{C.BRIGHT_GREEN}{I.CHECK} {name} stopped{C.RESET}")
    return True


# ==============================================================================
# Service Helpers
# ==============================================================================


def load_services():
    """
    Build the service graph, exiting with a message if Valkey is unreachable.

    Returns:
        tabpulse.services.Services
    """
    from tabpulse.infrastructure.valkey import check_valkey_connection
    from tabpulse.services.factory import build_services

    if not check_valkey_connection():
        print(f"{C.BRIGHT_RED}{I.CROSS} Cannot connect to Valkey{C.RESET}")
        print(f"  {C.DIM}Check VALKEY_HOST / VALKEY_PORT (see 'tabpulse config show'){C.RESET}")
        raise typer.Exit(1)
    return build_services()


# ==============================================================================
# Box Drawing Helpers
# ==============================================================================

# Regex pattern for stripping ANSI escape codes
_ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")


def _visible_len(s: str) -> int:
    """Calculate visible length of string, ignoring ANSI escape codes."""
    return len(_ANSI_ESCAPE_PATTERN.sub("", s))


def _box_header(title: str, width: int = BOX_WIDTH) -> str:
    """Create a single-line box header."""
    inner_width = width - 2
    title_padded = f" {title} "
    left_bar = (inner_width - len(title_padded)) // 2
    right_bar = inner_width - left_bar - len(title_padded)
    return (
        f"{C.CYAN}{B.TL}{B.H * left_bar}{C.BOLD}{C.WHITE}{title_padded}"
        f"{C.RESET}{C.CYAN}{B.H * right_bar}{B.TR}{C.RESET}"
    )


def _section_header(title: str, icon: str, width: int = BOX_WIDTH) -> str:
    """Create a section header with icon."""
    inner_width = width - 2
    title_with_icon = f" {icon} {title} "
    bar_len = inner_width - len(title_with_icon) - 1
    return f"{C.CYAN}{B.LT}{B.H}{C.BOLD}{title_with_icon}{C.RESET}{C.CYAN}{B.H * bar_len}{B.RT}{C.RESET}"


def _box_line(content: str, width: int = BOX_WIDTH) -> str:
    """Create a line inside the box with proper padding to right border."""
    inner_width = width - 2
    padding = max(inner_width - _visible_len(content), 0)
    return f"{C.CYAN}{B.V}{C.RESET}{content}{' ' * padding}{C.CYAN}{B.V}{C.RESET}"


def _empty_line(width: int = BOX_WIDTH) -> str:
    """Create an empty line inside the box."""
    return f"{C.CYAN}{B.V}{' ' * (width - 2)}{B.V}{C.RESET}"


def _box_bottom(width: int = BOX_WIDTH) -> str:
    """Create a box bottom border."""
    return f"{C.CYAN}{B.BL}{B.H * (width - 2)}{B.BR}{C.RESET}"


def _status_badge(status: str, is_ok: bool, is_stopped: bool = False) -> str:
    """Create a colored status badge."""
    if is_ok:
        return f"{C.BRIGHT_GREEN}{I.CHECK} {status}{C.RESET}"
    elif is_stopped:
        return f"{C.BRIGHT_YELLOW}{I.STOP} {status}{C.RESET}"
    else:
        return f"{C.BRIGHT_RED}{I.CROSS} {status}{C.RESET}"
