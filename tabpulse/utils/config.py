# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for local storage."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")

    key_prefix: str = Field(default="tabpulse", description="Prefix for every key written")
    metadata_ttl_hours: int = Field(default=24, description="TTL for cached page metadata")
    lock_timeout_seconds: int = Field(
        default=600, description="Expiry of the cross-process aggregation and sync locks"
    )

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class HeartbeatSettings(BaseSettings):
    """Engagement sampler settings."""

    model_config = SettingsConfigDict(env_prefix="HEARTBEAT_")

    interval_seconds: int = Field(default=30, description="Seconds between heartbeat samples")
    idle_threshold_seconds: int = Field(
        default=60, description="Seconds without input before the user counts as idle"
    )
    buffer_size: int = Field(default=100, description="Heartbeats kept for local statistics")
    persist_every: int = Field(
        default=10, description="Persist the heartbeat buffer every N samples"
    )
    watchdog_seconds: int = Field(
        default=60, description="How often the runner checks the heartbeat is still alive"
    )


class AggregationSettings(BaseSettings):
    """Aggregation pass settings."""

    model_config = SettingsConfigDict(env_prefix="AGGREGATION_")

    interval_minutes: int = Field(default=5, description="Minutes between aggregation passes")
    heartbeat_quantum_ms: int = Field(
        default=30_000, description="Active time credited per engaged heartbeat"
    )


class SyncSettings(BaseSettings):
    """Remote sync API settings."""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    api_base_url: str = Field(
        default="http://localhost:3000/api/v1", description="Base URL of the sync API"
    )
    api_token: Optional[str] = Field(default=None, description="Bearer token for the sync API")
    timeout_seconds: int = Field(default=30, description="Per-request upload timeout")
    chunk_size: int = Field(default=1000, description="Maximum records per upload request")
    interval_minutes: int = Field(default=5, description="Minutes between sync cycles")
    retention_days: int = Field(
        default=30, description="Days to keep synced records locally before purging"
    )

    @property
    def is_authenticated(self) -> bool:
        """Check if an API token is configured."""
        return bool(self.api_token)


class CleanupSettings(BaseSettings):
    """Local storage cleanup settings."""

    model_config = SettingsConfigDict(env_prefix="CLEANUP_")

    interval_hours: int = Field(default=24, description="Hours between cleanup runs")
    raw_event_max_age_hours: int = Field(
        default=168, description="Raw events older than this are expired unprocessed"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)
    heartbeat: HeartbeatSettings = Field(default_factory=HeartbeatSettings)
    aggregation: AggregationSettings = Field(default_factory=AggregationSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    cleanup: CleanupSettings = Field(default_factory=CleanupSettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(
        default=None, description="Write service logs to this file instead of stderr"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
