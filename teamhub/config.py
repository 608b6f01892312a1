"""
Application configuration.

Loads settings from environment variables. Everything has a sensible
default except the JWT signing secret, which must be supplied: a process
started without it fails at startup instead of signing with a guessable key.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # ==========================================================================
    # Session tokens
    # ==========================================================================

    jwt_secret_key: str  # required
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 7 * 24 * 60 * 60

    # ==========================================================================
    # Credentials
    # ==========================================================================

    password_hash_iterations: int = 600_000

    # ==========================================================================
    # Invite codes
    # ==========================================================================

    invite_code_length: int = 6
    invite_code_max_attempts: int = 5

    # ==========================================================================
    # OAuth (Google)
    # ==========================================================================

    google_oauth_client_id: str = ""
    google_oauth_client_secret: str = ""
    google_oauth_callback_url: str = "http://localhost:8000/auth/google/callback"

    # Where the browser is sent after the provider round-trip
    frontend_origin: str = "http://localhost:3000"
    frontend_google_callback_url: str = "http://localhost:3000/google/oauth/callback"

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def google_oauth_enabled(self) -> bool:
        return bool(self.google_oauth_client_id and self.google_oauth_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Set the root log level and format from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
