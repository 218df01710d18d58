# ==============================================================================
# Config Commands
# ==============================================================================
"""
Configuration commands for the tabpulse CLI.
"""

import json
from typing import Annotated

import typer

from tabpulse.cli.shared import C, get_project_root
from tabpulse.utils.config import get_settings


def _mask(secret: str | None) -> str | None:
    """Mask a secret, keeping the last 4 characters."""
    if not secret:
        return None
    if len(secret) <= 4:
        return "****"
    return f"****{secret[-4:]}"


# ==============================================================================
# Commands
# ==============================================================================


def config_show(
    json_output: Annotated[
        bool, typer.Option("--json", "-j", help="Output configuration as JSON")
    ] = False,
) -> None:
    """Display current configuration (secrets masked)."""
    settings = get_settings()
    env_file = get_project_root() / ".env"

    if json_output:
        config = {
            "valkey": {
                "host": settings.valkey.host,
                "port": settings.valkey.port,
                "db": settings.valkey.db,
                "ssl_enabled": settings.valkey.ssl,
                "password": _mask(settings.valkey.password),
                "key_prefix": settings.valkey.key_prefix,
                "metadata_ttl_hours": settings.valkey.metadata_ttl_hours,
                "lock_timeout_seconds": settings.valkey.lock_timeout_seconds,
            },
            "heartbeat": settings.heartbeat.model_dump(),
            "aggregation": settings.aggregation.model_dump(),
            "sync": {
                "api_base_url": settings.sync.api_base_url,
                "api_token": _mask(settings.sync.api_token),
                "timeout_seconds": settings.sync.timeout_seconds,
                "chunk_size": settings.sync.chunk_size,
                "interval_minutes": settings.sync.interval_minutes,
                "retention_days": settings.sync.retention_days,
            },
            "cleanup": settings.cleanup.model_dump(),
            "log_level": settings.log_level,
            "log_file": str(settings.log_file) if settings.log_file else None,
            "env_file": str(env_file) if env_file.exists() else None,
        }
        print(json.dumps(config, indent=2))
        return

    print()
    print(f"{C.BOLD}Configuration{C.RESET}")
    env_status = str(env_file) if env_file.exists() else "not found (using environment only)"
    print(f"  {C.DIM}.env: {env_status}{C.RESET}")
    print()

    # Valkey
    print(f"{C.CYAN}Valkey{C.RESET}")
    print(f"  Host:       {C.WHITE}{settings.valkey.host}{C.RESET}")
    print(f"  Port:       {C.WHITE}{settings.valkey.port}{C.RESET}")
    print(f"  Database:   {C.WHITE}{settings.valkey.db}{C.RESET}")
    valkey_ssl = "enabled" if settings.valkey.ssl else "disabled"
    print(f"  SSL:        {C.WHITE}{valkey_ssl}{C.RESET}")
    print(f"  Key prefix: {C.WHITE}{settings.valkey.key_prefix}{C.RESET}")
    print()

    # Heartbeat
    print(f"{C.CYAN}Heartbeat{C.RESET}")
    print(f"  Interval:   {C.WHITE}{settings.heartbeat.interval_seconds} seconds{C.RESET}")
    print(f"  Idle after: {C.WHITE}{settings.heartbeat.idle_threshold_seconds} seconds{C.RESET}")
    print(f"  Buffer:     {C.WHITE}{settings.heartbeat.buffer_size} samples{C.RESET}")
    print()

    # Aggregation
    print(f"{C.CYAN}Aggregation{C.RESET}")
    print(f"  Interval:   {C.WHITE}{settings.aggregation.interval_minutes} minutes{C.RESET}")
    print(f"  Quantum:    {C.WHITE}{settings.aggregation.heartbeat_quantum_ms} ms{C.RESET}")
    print()

    # Sync
    print(f"{C.CYAN}Sync{C.RESET}")
    print(f"  API:        {C.WHITE}{settings.sync.api_base_url}{C.RESET}")
    token = _mask(settings.sync.api_token) or "not set"
    print(f"  Token:      {C.WHITE}{token}{C.RESET}")
    print(f"  Interval:   {C.WHITE}{settings.sync.interval_minutes} minutes{C.RESET}")
    print(f"  Chunk size: {C.WHITE}{settings.sync.chunk_size}{C.RESET}")
    print(f"  Retention:  {C.WHITE}{settings.sync.retention_days} days{C.RESET}")
    print()

    # Cleanup
    print(f"{C.CYAN}Cleanup{C.RESET}")
    print(f"  Interval:   {C.WHITE}{settings.cleanup.interval_hours} hours{C.RESET}")
    print(f"  Raw events: {C.WHITE}{settings.cleanup.raw_event_max_age_hours} hours max{C.RESET}")
    print()
