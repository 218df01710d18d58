# ==============================================================================
# Status Command
# ==============================================================================
"""
Status command showing service, storage and sync health.
"""

from collections import Counter
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from tabpulse.cli.shared import (
    SERVICE_PID_FILE,
    C,
    I,
    _box_bottom,
    _box_header,
    _box_line,
    _empty_line,
    _section_header,
    _status_badge,
    get_process_pid,
)
from tabpulse.utils.clock import format_ms

# ==============================================================================
# Helper Functions
# ==============================================================================


def _format_duration(ms: int | None) -> str:
    if ms is None:
        return "open"
    seconds = ms // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes, seconds = divmod(seconds, 60)
    if minutes < 60:
        return f"{minutes}m {seconds:02d}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def _print_recent_visits(visits: list, limit: int) -> None:
    console = Console()
    table = Table(title=f"Recent Page Visits (last {limit})", show_header=True, header_style="bold")
    table.add_column("Started", justify="left")
    table.add_column("Domain", justify="left")
    table.add_column("Duration", justify="right")
    table.add_column("Engaged", justify="right")
    table.add_column("Category", justify="left")
    table.add_column("Sync", justify="left")

    for visit in visits[-limit:]:
        table.add_row(
            format_ms(visit.started_at),
            visit.domain,
            _format_duration(visit.duration_ms),
            f"{visit.engagement_rate:.0%}",
            f"{visit.category} ({visit.category_confidence:.2f})",
            visit.sync_status.value,
        )

    print()
    console.print(table)


# ==============================================================================
# Commands
# ==============================================================================


def show_status(
    visits: Annotated[
        int, typer.Option("--visits", "-v", help="Also list the N most recent page visits")
    ] = 0,
) -> None:
    """Show service status, pending events, stored records and sync state.

    Examples:
        tabpulse status
        tabpulse status --visits 20
    """
    from tabpulse.infrastructure.valkey import check_valkey_connection

    print()
    print(_box_header("tabpulse status"))
    print(_empty_line())

    # Service
    pid = get_process_pid(SERVICE_PID_FILE)
    service_badge = _status_badge(f"running (PID {pid})" if pid else "stopped", bool(pid), not pid)
    print(_box_line(f"  Service:  {service_badge}"))

    valkey_ok = check_valkey_connection()
    print(_box_line(f"  Valkey:   {_status_badge('connected' if valkey_ok else 'unreachable', valkey_ok)}"))
    print(_empty_line())

    if not valkey_ok:
        print(_box_bottom())
        print()
        raise typer.Exit(1)

    from tabpulse.services.factory import build_services

    services = build_services()
    page_visits = services.store.get_page_visits()
    aggregates = services.store.get_tab_aggregates()
    active = services.store.get_active_visit()
    sync_state = services.sync_manager.get_sync_state()

    # Storage
    print(_section_header("Storage", I.DATABASE))
    print(_box_line(f"  Pending events:  {C.WHITE}{services.event_log.count():,}{C.RESET}"))
    by_status = Counter(v.sync_status.value for v in page_visits)
    print(
        _box_line(
            f"  Page visits:     {C.WHITE}{len(page_visits):,}{C.RESET} "
            f"{C.DIM}({by_status['pending']} pending, {by_status['synced']} synced, "
            f"{by_status['failed']} failed){C.RESET}"
        )
    )
    open_tabs = sum(1 for a in aggregates if a.is_open)
    print(
        _box_line(
            f"  Tab aggregates:  {C.WHITE}{len(aggregates):,}{C.RESET} "
            f"{C.DIM}({open_tabs} open){C.RESET}"
        )
    )
    if active is not None:
        print(
            _box_line(
                f"  Active visit:    {C.WHITE}{active.domain}{C.RESET} "
                f"{C.DIM}tab {active.tab_id} since {format_ms(active.started_at)}{C.RESET}"
            )
        )
    else:
        print(_box_line(f"  Active visit:    {C.DIM}none{C.RESET}"))
    print(_empty_line())

    # Sync
    print(_section_header("Sync", I.SYNC))
    authenticated = services.settings.sync.is_authenticated
    print(
        _box_line(
            f"  API token:       "
            f"{_status_badge('configured' if authenticated else 'not set', authenticated, not authenticated)}"
        )
    )
    last_status = sync_state["lastSyncStatus"] or "never"
    print(
        _box_line(
            f"  Last sync:       {C.WHITE}{format_ms(sync_state['lastSyncTime'])}{C.RESET} "
            f"{C.DIM}({last_status}){C.RESET}"
        )
    )
    print(
        _box_line(f"  Last aggregate:  {C.WHITE}{format_ms(sync_state['lastAggregationTime'])}{C.RESET}")
    )
    print(_box_line(f"  Last cleanup:    {C.WHITE}{format_ms(sync_state['lastCleanupTime'])}{C.RESET}"))
    print(_empty_line())
    print(_box_bottom())

    if visits > 0 and page_visits:
        _print_recent_visits(page_visits, visits)
    print()
