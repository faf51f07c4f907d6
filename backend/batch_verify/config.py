"""
Batch verify client configuration.
Uses BV_CLIENT_ prefix; general settings (logging, metrics) come from get_settings().
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BatchVerifySettings(BaseSettings):
    """Endpoints, timeouts and local storage for the client."""

    model_config = SettingsConfigDict(
        env_prefix="BV_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service endpoints
    base_url: str = Field(default="http://localhost:8080", description="Origin serving /api and /upstream")
    batch_path: str = Field(default="/api/batch", description="Batch submission endpoint")
    upstream_path: str = Field(default="/upstream/", description="Page carrying the anti-forgery token")

    # Timeouts (seconds)
    request_timeout_s: float = Field(default=15.0, description="Timeout for non-streaming phases")
    connect_timeout_s: float = Field(default=5.0, description="TCP connect timeout")
    stream_read_timeout_s: Optional[float] = Field(
        default=None, description="Max wait between stream chunks; None waits until cancelled"
    )

    # Anti-forgery token cache
    csrf_token_ttl_s: float = Field(default=300.0, description="Age after which the cached token is refetched")

    # Local storage
    credential_store_path: Path = Field(
        default=Path.home() / ".batch_verify" / "credentials.json",
        description="JSON file holding the API key",
    )
    credential_store_key: str = Field(default="batch_verify_api_key", description="Key of the API key entry")
    export_dir: Path = Field(default=Path("."), description="Directory for exported reports")


def get_batch_verify_settings() -> BatchVerifySettings:
    """Load client settings."""
    return BatchVerifySettings()
