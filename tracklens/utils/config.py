# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.

Tracker embedding attributes are NOT configured here: they are read once
per page load into ``tracklens.tracker.config.TrackerConfig``. The
``TrackerSettings`` below only feed the ``tracklens replay`` command.
"""

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()


class StoreSettings(BaseSettings):
    """Aggregation store settings."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    backend: Literal["memory", "valkey"] = Field(
        default="memory",
        description="Event log backend (memory, valkey)",
    )
    max_events: int = Field(
        default=100_000,
        description="Event log capacity; the oldest half is evicted when reached",
    )


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for the persistent event log."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")
    key_prefix: str = Field(default="tracklens", description="Prefix for all keys")

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class ApiSettings(BaseSettings):
    """Ingestion API settings."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8000, description="Bind port")
    route: str = Field(default="/api/tracking", description="Ingestion/query route")
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to POST batches (tracked pages live elsewhere)",
    )


class TrackerSettings(BaseSettings):
    """Settings for driving a tracker from the command line (replay)."""

    model_config = SettingsConfigDict(env_prefix="TRACKER_")

    endpoint: str = Field(
        default="http://127.0.0.1:8000/api/tracking",
        description="Ingestion endpoint batches are delivered to",
    )
    user_id: str = Field(default="anonymous", description="Tracked user identifier")
    http_timeout_seconds: float = Field(
        default=5.0, description="Timeout for the HTTP fallback transport"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    store: StoreSettings = Field(default_factory=StoreSettings)
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    tracker: TrackerSettings = Field(default_factory=TrackerSettings)

    # General settings
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for subsequent calls.
    """
    return Settings()
