"""Application configuration using Pydantic Settings.

Configuration is loaded from environment variables. Point `ENV_FILE` at a
local env file to load one explicitly; nothing is auto-discovered.

The same settings object serves both halves of the project: the client-side
sync layer (cache TTL, debounce interval, dashboard throttle) and the
reference API (token, CORS).
"""

import os
from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(str, Enum):
    """Application environment values."""

    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class Settings(BaseSettings):
    """
    Application settings with type validation.

    Every field has a default so the client can be constructed without any
    environment at all (tests, notebooks, scripts).
    """

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE") or None, env_prefix="", extra="ignore"
    )

    # Application
    app_env: AppEnvironment = AppEnvironment.LOCAL
    app_name: str = "dashsync"
    app_log_level: str = "INFO"

    # Observability
    observability_enabled: bool = True
    observability_structured_logs: bool = True
    observability_request_id_header: str = "X-Request-ID"

    # Client transport
    api_base_url: str = "http://localhost:8000"
    http_timeout_seconds: float = Field(default=10.0, gt=0)
    login_route: str = "/login"

    # Sync layer timing
    cache_ttl_seconds: float = Field(default=30.0, ge=0)
    save_debounce_seconds: float = Field(default=5.0, ge=0)
    dashboard_throttle_seconds: float = Field(default=30.0, ge=0)

    # Reference API
    # When set, every /api route requires "Authorization: Bearer <token>".
    api_token: str | None = None
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the base URL so endpoint paths can be appended verbatim."""
        return v.rstrip("/")

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
