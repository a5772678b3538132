"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    session_timeout_ms: int = 120_000
    client_timeout_ms: int = 3_000
    cleanup_interval_ms: int = 60_000
    polling_interval_ms: int = 2_000
    max_upload_bytes: int = 30 * 1024 * 1024
    upload_dir: Path = Path(".data") / "uploads"
    public_base_url: str | None = None
    admin_token: str | None = None
    event_log_size: int = 1_000
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def normalize_base_url(raw: str | None) -> str | None:
    """Return a public base URL without trailing slashes, or None when unset."""
    if raw is None:
        return None
    cleaned = raw.strip().rstrip("/")
    return cleaned or None
