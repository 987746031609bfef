# ==============================================================================
# Application Configuration
# ==============================================================================
"""
Configuration management using pydantic-settings.

All configuration is loaded from environment variables, with support for
.env files via python-dotenv.
"""

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file before any settings are instantiated
load_dotenv()

# FingerprintJS Server API hosts per region
FINGERPRINT_API_HOSTS = {
    "global": "https://api.fpjs.io",
    "eu": "https://eu.api.fpjs.io",
    "ap": "https://ap.api.fpjs.io",
}


class ValkeySettings(BaseSettings):
    """Valkey (Redis-compatible) connection settings for engine state."""

    model_config = SettingsConfigDict(env_prefix="VALKEY_")

    host: str = Field(default="localhost", description="Valkey host")
    port: int = Field(default=6379, description="Valkey port")
    password: Optional[str] = Field(default=None, description="Valkey password")
    db: int = Field(default=0, description="Valkey database number")
    ssl: bool = Field(default=False, description="Use SSL/TLS connection")

    @property
    def url(self) -> str:
        """Build Valkey connection URL."""
        # Use rediss:// scheme for SSL connections
        scheme = "rediss" if self.ssl else "redis"
        if self.password:
            return f"{scheme}://:{self.password}@{self.host}:{self.port}/{self.db}"
        return f"{scheme}://{self.host}:{self.port}/{self.db}"


class FingerprintSettings(BaseSettings):
    """Signal provider (FingerprintJS Server API) settings.

    When no secret key is configured, visits are ingested without server
    signals and scored from client signals only.
    """

    model_config = SettingsConfigDict(env_prefix="FINGERPRINT_")

    secret_api_key: Optional[str] = Field(default=None, description="Server API secret key")
    region: Literal["global", "eu", "ap"] = Field(
        default="global", description="API region (global, eu, ap)"
    )
    timeout_seconds: float = Field(default=5.0, description="HTTP timeout per lookup")

    @property
    def is_configured(self) -> bool:
        return bool(self.secret_api_key)

    @property
    def api_base(self) -> str:
        return FINGERPRINT_API_HOSTS[self.region]


class EngineSettings(BaseSettings):
    """Ingestion engine settings."""

    model_config = SettingsConfigDict(env_prefix="ENGINE_")

    store_backend: Literal["memory", "valkey"] = Field(
        default="valkey", description="State backend (memory, valkey)"
    )
    max_visits_per_store: int = Field(
        default=1000, description="Recent visits retained per store (oldest evicted)"
    )
    visitor_detail_visits: int = Field(
        default=50, description="Visits shown in the visitor detail view"
    )
    activity_limit: int = Field(default=20, description="Visits shown in the activity feed")
    ingest_workers: int = Field(default=4, description="Worker threads for batch ingestion")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        extra="ignore",
    )

    # Nested settings
    valkey: ValkeySettings = Field(default_factory=ValkeySettings)
    fingerprint: FingerprintSettings = Field(default_factory=FingerprintSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)

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
