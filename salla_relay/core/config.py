"""
Application configuration models and helpers.

Centralizes settings management so the webhook receiver, the query surface and
the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_WEBHOOK_SECRET = "your-webhook-secret-from-partners-portal"


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class SallaSettings(BaseSettings):
    """Configuration for the Salla app and its Admin API."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    app_id: Optional[str] = Field(None, validation_alias="SALLA_APP_ID")
    client_id: Optional[str] = Field(None, validation_alias="SALLA_CLIENT_ID")
    client_secret: Optional[str] = Field(
        None,
        validation_alias="SALLA_CLIENT_SECRET",
        description="Shared secret callers must present to read raw tokens.",
    )
    webhook_secret: str = Field(
        PLACEHOLDER_WEBHOOK_SECRET,
        validation_alias="SALLA_WEBHOOK_SECRET",
        description="Signing secret from the Partners Portal.",
    )
    allow_unsigned_webhooks: bool = Field(
        True,
        validation_alias="SALLA_ALLOW_UNSIGNED_WEBHOOKS",
        description=(
            "Trust webhook deliveries when no signing secret is configured. "
            "Intended for local development only."
        ),
    )
    api_base_url: str = Field(
        "https://api.salla.dev/admin/v2", validation_alias="SALLA_API_BASE_URL"
    )
    api_timeout_seconds: float = Field(15.0, validation_alias="SALLA_API_TIMEOUT_SECONDS")
    api_page_size: int = Field(20, validation_alias="SALLA_API_PAGE_SIZE")
    live_data_enabled: bool = Field(
        True,
        validation_alias="SALLA_LIVE_DATA_ENABLED",
        description="When false the data endpoint never calls the Salla API.",
    )

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def webhook_secret_configured(self) -> bool:
        secret = (self.webhook_secret or "").strip()
        return bool(secret) and secret != PLACEHOLDER_WEBHOOK_SECRET


class StorageSettings(BaseSettings):
    """Where merchant records are persisted."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    backend: Literal["sqlite", "file"] = Field("sqlite", validation_alias="TOKEN_STORE_BACKEND")
    db_path: str = Field("data/tokens.db", validation_alias="TOKEN_DB_PATH")
    token_dir: str = Field(
        "tokens",
        validation_alias="TOKEN_DIR",
        description="Directory holding one JSON file per record for the file backend.",
    )


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    version: str = Field("1.0.0", validation_alias="APP_VERSION")
    dev_log_capacity: int = Field(100, validation_alias="DEV_LOG_CAPACITY")
    salla: SallaSettings = Field(default_factory=SallaSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "PLACEHOLDER_WEBHOOK_SECRET",
    "SallaSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
