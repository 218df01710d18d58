# ==============================================================================
# Service Commands
# ==============================================================================
"""
Commands for running and stopping the long-running tabpulse service.
"""

import typer

from tabpulse.cli.shared import C, I, SERVICE_PID_FILE, get_process_pid, load_services, stop_process

# ==============================================================================
# Commands
# ==============================================================================


def service_run() -> None:
    """Run the service in the foreground (heartbeat, aggregation, sync, cleanup).

    Stops cleanly on Ctrl+C or SIGTERM after a final aggregation pass.
    Logs go to stderr, or to LOG_FILE when set.

    Examples:
        tabpulse run
        LOG_LEVEL=DEBUG tabpulse run
    """
    from tabpulse.runner import ServiceRunner

    pid = get_process_pid(SERVICE_PID_FILE)
    if pid:
        print(f"{C.BRIGHT_YELLOW}{I.WARN} tabpulse service is already running (PID: {pid}){C.RESET}")
        raise typer.Exit(1)

    services = load_services()
    print(f"{C.BRIGHT_GREEN}{I.PLAY} tabpulse service starting{C.RESET}")
    print(f"  Client: {C.WHITE}{services.anonymous_client_id}{C.RESET}")
    print(f"  {C.DIM}Press Ctrl+C to stop{C.RESET}")
    ServiceRunner(settings=services.settings, services=services).run()


def service_stop() -> None:
    """Stop a running tabpulse service.

    Examples:
        tabpulse stop
    """
    if not stop_process(SERVICE_PID_FILE, "tabpulse service"):
        raise typer.Exit(1)
