# ==============================================================================
# Heartbeat Commands
# ==============================================================================
"""
Heartbeat commands: engagement statistics and recent samples from the
persisted ring buffer.
"""

import json
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from tabpulse.cli.shared import C, I, load_services
from tabpulse.utils.clock import format_ms


def _load_sampler():
    services = load_services()
    sampler = services.sampler
    # Load the persisted buffer without starting the timer
    sampler.load()
    return sampler


# ==============================================================================
# Commands
# ==============================================================================


def heartbeat_stats(
    json_output: Annotated[bool, typer.Option("--json", "-j", help="Output as JSON")] = False,
) -> None:
    """Show engagement statistics over the recent heartbeat buffer.

    The buffer is persisted by the running service every few heartbeats.

    Examples:
        tabpulse heartbeat stats
        tabpulse heartbeat stats --json
    """
    stats = _load_sampler().stats()

    if json_output:
        print(json.dumps(stats))
        return

    print()
    if stats["totalHeartbeats"] == 0:
        print(f"  {C.BRIGHT_YELLOW}{I.WARN} No heartbeats recorded yet{C.RESET}")
        print(f"  {C.DIM}Heartbeats are sampled while 'tabpulse run' is active.{C.RESET}")
        print()
        return

    print(f"  {C.BOLD}{I.HEART} Engagement{C.RESET}")
    print(f"  Heartbeats:       {C.WHITE}{stats['totalHeartbeats']}{C.RESET}")
    print(f"  Engaged:          {C.WHITE}{stats['engagedCount']}{C.RESET}")
    print(f"  Engagement rate:  {C.WHITE}{stats['engagementRate']:.0%}{C.RESET}")
    print(f"  With audio:       {C.WHITE}{stats['audibleCount']}{C.RESET}")
    states = ", ".join(f"{state} {count}" for state, count in stats["idleStates"].items())
    print(f"  Idle states:      {C.DIM}{states}{C.RESET}")
    print(f"  Last sample:      {C.WHITE}{format_ms(stats['lastSampleAt'])}{C.RESET}")
    print()


def heartbeat_recent(
    count: Annotated[int, typer.Option("--count", "-n", help="Number of samples")] = 10,
) -> None:
    """List the most recent heartbeat samples.

    Examples:
        tabpulse heartbeat recent
        tabpulse heartbeat recent -n 30
    """
    samples = _load_sampler().recent(count)
    if not samples:
        print(f"\n  {C.BRIGHT_YELLOW}{I.WARN} No heartbeats recorded yet{C.RESET}\n")
        return

    console = Console()
    table = Table(title=f"Recent Heartbeats (last {count})", show_header=True, header_style="bold")
    table.add_column("Time", justify="left")
    table.add_column("Tab", justify="right")
    table.add_column("State", justify="left")
    table.add_column("Engaged", justify="left")
    table.add_column("Reason", justify="left")
    table.add_column("Confidence", justify="right")

    for sample in samples:
        table.add_row(
            format_ms(sample.timestamp),
            str(sample.tab_id) if sample.tab_id is not None else "—",
            sample.idle_state.value,
            "yes" if sample.engagement.is_engaged else "no",
            sample.engagement.reason.value,
            f"{sample.engagement.confidence:.1f}",
        )

    print()
    console.print(table)
    print()
