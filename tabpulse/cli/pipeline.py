# ==============================================================================
# Pipeline Commands
# ==============================================================================
"""
One-shot pipeline commands: ingest bridge messages, run an aggregation pass,
sync to the backend and run cleanup.
"""

import json
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer

from tabpulse.cli.shared import C, I, load_services

# ==============================================================================
# Commands
# ==============================================================================


def pipeline_ingest(
    file: Annotated[
        Optional[Path],
        typer.Argument(help="JSON-lines file from the browser bridge (stdin if omitted)"),
    ] = None,
) -> None:
    """Ingest browser bridge messages (events, state reports, page metadata).

    Each line is a JSON object with "kind" set to event, state or metadata.
    Events pass through triage before reaching the event log.

    Examples:
        tabpulse ingest events.jsonl
        browser-bridge | tabpulse ingest
    """
    from tabpulse.services.ingest import BridgeIngestor

    if file is not None and not file.exists():
        print(f"{C.BRIGHT_RED}{I.CROSS} File not found: {file}{C.RESET}")
        raise typer.Exit(1)

    services = load_services()
    ingestor = BridgeIngestor(services.recorder, services.probe, services.metadata)

    if file is None:
        result = ingestor.ingest_lines(sys.stdin)
    else:
        with open(file) as f:
            result = ingestor.ingest_lines(f)

    print(
        f"{C.BRIGHT_GREEN}{I.CHECK} Ingested {C.WHITE}{result.total}{C.RESET}{C.BRIGHT_GREEN} messages{C.RESET}"
    )
    print(f"  Events recorded:  {C.WHITE}{result.events_recorded}{C.RESET}")
    print(f"  Events rejected:  {C.DIM}{result.events_rejected}{C.RESET}")
    print(f"  State reports:    {C.WHITE}{result.states}{C.RESET}")
    print(f"  Metadata:         {C.WHITE}{result.metadata}{C.RESET}")
    if result.malformed:
        print(f"  {C.BRIGHT_YELLOW}{I.WARN} Malformed:      {result.malformed}{C.RESET}")
        for error in result.errors[:5]:
            print(f"    {C.DIM}{error}{C.RESET}")


def pipeline_aggregate(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Run one aggregation pass over the event log.

    Examples:
        tabpulse aggregate
        tabpulse aggregate --json
    """
    services = load_services()
    result = services.aggregator.process_pending()

    if json_output:
        print(json.dumps(result.to_dict()))
    elif result.success:
        print(
            f"{C.BRIGHT_GREEN}{I.CHECK} Aggregated {C.WHITE}{result.processed_count}"
            f"{C.RESET}{C.BRIGHT_GREEN} events{C.RESET}"
        )
        print(f"  New visits:   {C.WHITE}{result.new_visits}{C.RESET}")
        print(f"  Tabs touched: {C.WHITE}{result.touched_aggregates}{C.RESET}")
        if result.error_count:
            print(f"  {C.BRIGHT_YELLOW}{I.WARN} Errors:     {result.error_count}{C.RESET}")
    else:
        print(f"{C.BRIGHT_RED}{I.CROSS} Aggregation failed: {result.error}{C.RESET}")

    if not result.success:
        raise typer.Exit(1)


def pipeline_sync(
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Sync even without an API token")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Upload unsynced page visits and tab aggregates to the sync API.

    Runs an aggregation pass first. Records in failed chunks are retried on
    the next sync.

    Examples:
        tabpulse sync
        tabpulse sync --force
    """
    services = load_services()
    result = services.sync_manager.sync_to_backend(force=force)

    if json_output:
        print(json.dumps(result.to_dict()))
    elif result.success:
        print(
            f"{C.BRIGHT_GREEN}{I.CHECK} Synced {C.WHITE}{result.synced}{C.RESET}"
            f"{C.BRIGHT_GREEN} records{C.RESET}"
        )
        if result.message:
            print(f"  {C.DIM}{result.message}{C.RESET}")
    elif result.synced:
        print(
            f"{C.BRIGHT_YELLOW}{I.WARN} Partial sync: {result.synced} synced, "
            f"{result.failed} failed (retried next sync){C.RESET}"
        )
    else:
        print(f"{C.BRIGHT_RED}{I.CROSS} Sync failed: {result.error}{C.RESET}")
        if result.error == "not authenticated":
            print(f"  {C.DIM}Set SYNC_API_TOKEN or pass --force{C.RESET}")

    if not result.success:
        raise typer.Exit(1)


def pipeline_cleanup() -> None:
    """Expire old raw events and purge synced records past retention.

    Examples:
        tabpulse cleanup
    """
    services = load_services()
    result = services.cleanup.run()

    print(f"{C.BRIGHT_GREEN}{I.CHECK} Cleanup complete{C.RESET}")
    print(f"  Raw events expired: {C.WHITE}{result.expired_events}{C.RESET}")
    print(f"  Visits purged:      {C.WHITE}{result.purged_visits}{C.RESET}")
    print(f"  Aggregates purged:  {C.WHITE}{result.purged_aggregates}{C.RESET}")
