# ==============================================================================
# Tabpulse CLI
# ==============================================================================
"""
Command-line interface for the tabpulse browser activity pipeline.

Usage:
    tabpulse --help
    tabpulse run
    tabpulse stop
    tabpulse status
    tabpulse ingest events.jsonl
    tabpulse aggregate
    tabpulse sync --force
    tabpulse cleanup
    tabpulse heartbeat stats
    tabpulse config show
    tabpulse data reset -y
    tabpulse data export -o backup.json
"""

# ==============================================================================
# App Configuration
# ==============================================================================
# Set consistent terminal width for help output formatting
import os

import typer

if "COLUMNS" not in os.environ:
    os.environ["COLUMNS"] = "115"

app = typer.Typer(
    name="tabpulse",
    help="Browser tab activity aggregation, engagement and sync pipeline",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Service commands are imported from tabpulse.cli.service
from tabpulse.cli.service import service_run, service_stop

app.command("run")(service_run)
app.command("stop")(service_stop)

# Pipeline one-shots are imported from tabpulse.cli.pipeline
from tabpulse.cli.pipeline import (
    pipeline_aggregate,
    pipeline_cleanup,
    pipeline_ingest,
    pipeline_sync,
)

app.command("ingest")(pipeline_ingest)
app.command("aggregate")(pipeline_aggregate)
app.command("sync")(pipeline_sync)
app.command("cleanup")(pipeline_cleanup)

# Status command is imported from tabpulse.cli.status
from tabpulse.cli.status import show_status

app.command("status")(show_status)

heartbeat_app = typer.Typer(
    help="Engagement heartbeat statistics",
    no_args_is_help=True,
)
app.add_typer(heartbeat_app, name="heartbeat")

from tabpulse.cli.heartbeat import heartbeat_recent, heartbeat_stats

heartbeat_app.command("stats")(heartbeat_stats)
heartbeat_app.command("recent")(heartbeat_recent)

config_app = typer.Typer(
    help="Configuration management",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")

from tabpulse.cli.config import config_show

config_app.command("show")(config_show)

data_app = typer.Typer(
    help="Local data management",
    no_args_is_help=True,
)
app.add_typer(data_app, name="data")

from tabpulse.cli.data import data_export, data_reset

data_app.command("reset")(data_reset)
data_app.command("export")(data_export)


# ==============================================================================
# Entry Point
# ==============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
