"""Configuration management for ShareAudit."""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ShareAudit configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="SHAREAUDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Authentication
    auth_mode: Literal["token", "client_credentials"] = Field(
        default="token",
        description="How to obtain Graph access tokens"
    )
    access_token: Optional[str] = Field(
        default=None,
        description="Pre-acquired bearer token (auth_mode=token)"
    )
    tenant_id: Optional[str] = Field(default=None, description="Directory tenant ID")
    client_id: Optional[str] = Field(default=None, description="App registration client ID")
    client_secret: Optional[str] = Field(default=None, description="App registration secret")

    # Graph API
    graph_base_url: str = Field(
        default="https://graph.microsoft.com/v1.0",
        description="Graph API base URL"
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout in seconds"
    )

    # Retry / backoff
    max_retries: int = Field(default=3, ge=0, description="Retries on 429/5xx")
    base_delay: float = Field(default=1.0, ge=0, description="Initial backoff delay in seconds")
    max_delay: float = Field(default=60.0, ge=0, description="Backoff delay ceiling in seconds")

    # Scan
    max_concurrency: int = Field(
        default=5,
        ge=1,
        description="Maximum traversal units in flight"
    )
    site_filter: Optional[str] = Field(
        default=None,
        description="Regex applied to site names before descending"
    )
    scan_timeout: Optional[float] = Field(
        default=None,
        description="Abort the scan after this many seconds"
    )

    # Remediation
    batch_size: int = Field(default=10, ge=1, le=50, description="Items per remediation batch")
    batch_pause_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Pause between remediation batches"
    )
    expiration_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Days until expiry for set-expiration"
    )
    dry_run: bool = Field(
        default=False,
        description="Report what would change without mutating anything"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="console",
        description="Log format: json, console"
    )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance (for testing)."""
    global _settings
    _settings = None
