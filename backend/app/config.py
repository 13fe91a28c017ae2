"""
Application configuration using Pydantic Settings.
All timestamps use UTC. Server time is authoritative.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "HomeManager"
    app_env: str = "development"
    debug: bool = False
    secret_key: str = "change-me-in-production"

    # Database
    database_url: str = "sqlite+aiosqlite:///./homemanager.db"

    # Public URL of the web client, used for invitation links
    public_app_url: str = "http://localhost:5173"

    # Invitations
    invitation_ttl_days: int = 7

    # Identity provider sign-in (development shortcut issuing our own JWTs)
    allow_dev_login: bool = True
    access_token_expire_minutes: int = 60 * 24 * 7  # 7 days

    # Mail (SMTP)
    smtp_host: Optional[str] = None
    smtp_port: int = 1025
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = False
    email_from: str = "HomeManager <no-reply@homemanager.app>"

    # Web Push (VAPID)
    vapid_public_key: Optional[str] = None
    vapid_private_key: Optional[str] = None
    vapid_contact_email: str = "admin@homemanager.app"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def has_smtp(self) -> bool:
        return bool(self.smtp_host)

    @property
    def has_vapid_keys(self) -> bool:
        return bool(self.vapid_public_key) and bool(self.vapid_private_key)

    @property
    def vapid_subject(self) -> str:
        contact = self.vapid_contact_email
        if contact.startswith("mailto:") or contact.startswith("https://"):
            return contact
        return f"mailto:{contact}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
