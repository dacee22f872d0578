"""Application settings loaded from environment variables.

Uses pydantic-settings for validation and type coercion. App-specific
settings use the ``NIVARAN_`` prefix; infrastructure settings use
their canonical environment variable names via ``validation_alias``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Central configuration for the Nivaran grievance service.

    Environment variables are loaded from a ``.env`` file when present.
    App-specific keys are prefixed with ``NIVARAN_``; infra keys use
    their standard names (configured via ``validation_alias``).
    """

    model_config = SettingsConfigDict(
        env_prefix="NIVARAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ── App ────────────────────────────────────────────────────────────
    env: Literal["development", "production"] = "development"
    app_url: str = Field(default="http://localhost:3000", validation_alias="APP_URL")
    cors_origins: str = Field(default="", validation_alias="CORS_ORIGINS")

    # ── API ────────────────────────────────────────────────────────────
    api_host: str = Field(default="0.0.0.0", validation_alias="API_HOST")
    api_port: int = Field(default=8000, validation_alias="API_PORT")

    # ── Admin API Key ──────────────────────────────────────────────────
    admin_api_key: str = Field(default="", validation_alias="ADMIN_API_KEY")

    # ── Logging ────────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    # ── Email (serverless send-email function) ─────────────────────────
    email_function_url: str = Field(default="", validation_alias="EMAIL_FUNCTION_URL")
    email_function_key: str = Field(default="", validation_alias="EMAIL_FUNCTION_KEY")
    email_sender_name: str = "Grievance Management System"

    # ── WhatsApp Business (Meta Cloud API) ─────────────────────────────
    whatsapp_phone_number_id: str = Field(default="", validation_alias="WHATSAPP_PHONE_NUMBER_ID")
    whatsapp_access_token: str = Field(default="", validation_alias="WHATSAPP_ACCESS_TOKEN")

    # ── Support contact ────────────────────────────────────────────────
    helpline_number: str = "1800-GRIEVANCE"
    support_email: str = "support@grievance.gov.in"

    # ── Notifications ──────────────────────────────────────────────────
    notification_list_limit: int = Field(default=50, ge=1, le=500)
    feed_resubscribe_attempts: int = Field(default=5, ge=0)
    feed_backoff_max_seconds: float = 30.0

    # ── Chat ───────────────────────────────────────────────────────────
    chat_reply_delay_seconds: float = Field(default=1.0, ge=0.0)

    # ── Derived Properties ─────────────────────────────────────────────

    @property
    def is_production(self) -> bool:
        return self.env == Environment.PRODUCTION

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


# Module-level singleton; import ``settings`` everywhere.
settings = Settings()
