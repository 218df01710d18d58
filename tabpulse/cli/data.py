# ==============================================================================
# Data Commands
# ==============================================================================
"""
Data management commands for the tabpulse CLI.

Commands for resetting and exporting locally stored data.
"""

import json
from pathlib import Path
from typing import Annotated, Optional

import typer

from tabpulse.cli.shared import C, I, SERVICE_PID_FILE, is_process_running, load_services

# ==============================================================================
# Commands
# ==============================================================================


def data_reset(
    confirm: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")] = False,
) -> None:
    """Delete all local tabpulse data (events, visits, aggregates, sync state).

    Only keys under the configured prefix are removed. The service must be
    stopped first.

    Examples:
        tabpulse data reset       # With confirmation prompt
        tabpulse data reset -y    # Skip confirmation
    """
    print()
    print(f"  Checking processes...")

    if is_process_running(SERVICE_PID_FILE):
        print(
            f"{C.BRIGHT_RED}{I.CROSS} tabpulse service is running - "
            f"stop it first with '{C.WHITE}tabpulse stop{C.BRIGHT_RED}'{C.RESET}"
        )
        raise typer.Exit(1)
    print(f"{C.BRIGHT_GREEN}{I.CHECK} tabpulse service is stopped{C.RESET}")
    print()

    if not confirm:
        typer.confirm(
            "This will DELETE all local events, page visits and tab aggregates. Are you sure?",
            abort=True,
        )
        print()

    services = load_services()

    print(f"  Clearing event log...")
    events = services.event_log.clear()
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Event log cleared ({C.WHITE}{events}{C.RESET} events){C.RESET}")

    print(f"  Clearing aggregated storage...")
    keys = services.store.clear_all()
    print(f"{C.BRIGHT_GREEN}{I.CHECK} Aggregated storage cleared ({C.WHITE}{keys}{C.RESET} keys){C.RESET}")

    print()
    print(f"{C.BRIGHT_GREEN}{I.CHECK} All data reset successfully{C.RESET}")
    print()


def data_export(
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write to this file instead of stdout"),
    ] = None,
    unsynced_only: Annotated[
        bool, typer.Option("--unsynced", help="Only records not yet synced")
    ] = False,
) -> None:
    """Export page visits and tab aggregates as JSON.

    Examples:
        tabpulse data export
        tabpulse data export -o backup.json
        tabpulse data export --unsynced
    """
    services = load_services()
    visits = services.store.get_page_visits()
    aggregates = services.store.get_tab_aggregates()
    if unsynced_only:
        visits = [v for v in visits if not v.synced]
        aggregates = [a for a in aggregates if not a.synced]

    payload = {
        "anonymousClientId": services.anonymous_client_id,
        "pageVisits": [v.to_record() for v in visits],
        "tabAggregates": [a.to_sync_record() for a in aggregates],
    }
    text = json.dumps(payload, indent=2)

    if output is None:
        print(text)
        return

    output.write_text(text)
    print(
        f"{C.BRIGHT_GREEN}{I.CHECK} Exported {C.WHITE}{len(visits)}{C.RESET}{C.BRIGHT_GREEN} visits and "
        f"{C.WHITE}{len(aggregates)}{C.RESET}{C.BRIGHT_GREEN} aggregates to {output}{C.RESET}"
    )
