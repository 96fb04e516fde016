"""
Application configuration models and helpers.

Centralizes settings management so the CLI commands, the OAuth callback
listener and the template cache share a consistent configuration surface.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _home() -> Path:
    return Path.home()


class _OrbiterSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class AuthSettings(_OrbiterSettings):
    """Identity provider access and local credential bookkeeping."""

    supabase_url: str = Field("", validation_alias="SUPABASE_URL")
    supabase_anon_key: str = Field("", validation_alias="SUPABASE_ANON_KEY")
    credentials_path: Path = Field(
        default_factory=lambda: _home() / ".orbiter.json",
        validation_alias="ORBITER_CREDENTIALS_PATH",
    )
    api_key: Optional[str] = Field(
        None,
        validation_alias="ORBITER_API_KEY",
        description="When set, used as the credential without touching the store.",
    )
    token_refresh_minutes: int = Field(
        55,
        validation_alias="ORBITER_TOKEN_REFRESH_MINUTES",
        description="Age after which an OAuth access token is refreshed.",
    )
    login_port: int = Field(54321, validation_alias="ORBITER_LOGIN_PORT")
    login_timeout_seconds: float = Field(60.0, validation_alias="ORBITER_LOGIN_TIMEOUT")

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_key_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def refresh_after(self) -> timedelta:
        return timedelta(minutes=self.token_refresh_minutes)


class ApiSettings(_OrbiterSettings):
    """Hosted sites API and content upload service."""

    base_url: str = Field("https://api.orbiter.host", validation_alias="ORBITER_API_URL")
    site_domain: str = Field("orbiter.website", validation_alias="ORBITER_SITE_DOMAIN")
    upload_url: str = Field(
        "https://api.pinata.cloud/pinning/pinFileToIPFS",
        validation_alias="ORBITER_UPLOAD_URL",
    )
    upload_group_id: Optional[str] = Field(
        "c5e8c379-e7c1-4c43-a2e9-79597d477481",
        validation_alias="ORBITER_UPLOAD_GROUP",
    )
    source: str = Field("cli", validation_alias="SOURCE")
    timeout_seconds: float = Field(30.0, validation_alias="ORBITER_HTTP_TIMEOUT")


class TemplateSettings(_OrbiterSettings):
    """Remote template repository and local cache."""

    repository: str = Field(
        "orbiterhost/orbiter-templates", validation_alias="ORBITER_TEMPLATES_REPO"
    )
    cache_dir: Path = Field(
        default_factory=lambda: _home() / ".orbiter" / "templates",
        validation_alias="ORBITER_TEMPLATES_CACHE",
    )
    cache_ttl_hours: float = Field(24.0, validation_alias="ORBITER_TEMPLATES_TTL_HOURS")
    github_api_url: str = Field("https://api.github.com", validation_alias="GITHUB_API_URL")
    raw_base_url: str = Field(
        "https://raw.githubusercontent.com/orbiterhost/orbiter-templates/main",
        validation_alias="ORBITER_TEMPLATES_RAW_URL",
    )

    @property
    def repository_url(self) -> str:
        return f"https://github.com/{self.repository}"

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.cache_ttl_hours)


class AppSettings(_OrbiterSettings):
    """Root settings object for the CLI."""

    log_level: str = Field("WARNING", validation_alias="ORBITER_LOG_LEVEL")
    auth: AuthSettings = Field(default_factory=AuthSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    templates: TemplateSettings = Field(default_factory=TemplateSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "ApiSettings",
    "AppSettings",
    "AuthSettings",
    "TemplateSettings",
    "get_settings",
]
