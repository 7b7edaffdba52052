"""Application configuration."""

import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    admin_token: str | None = None
    log_level: str = "INFO"
    matching_backend: Literal["queue", "direct-code"] = "queue"
    reaper_interval_seconds: float = 60.0
    pending_session_timeout_seconds: float = 300.0
    display_code_length: int = 6
    send_timeout_seconds: float = 5.0
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 3000
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
