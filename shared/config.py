"""
Shared configuration management for the NuGet README Access service.
"""

from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="NUGET_README_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = "local"
    log_level: str = "info"
    user_agent: str = "nuget-readme-access/1.0.0"

    # Upstream requests
    request_timeout_ms: int = Field(default=30000, ge=1)
    retry_attempts: int = Field(default=3, ge=0)
    base_retry_delay_ms: int = Field(default=1000, ge=0)

    # NuGet endpoints
    flat_container_url: str = "https://api.nuget.org/v3-flatcontainer"
    registration_url: str = "https://api.nuget.org/v3/registration5-semver1"
    search_url: str = "https://azuresearch-usnc.nuget.org/query"

    # GitHub fallback host
    github_api_url: str = "https://api.github.com"
    github_timeout_ms: int = Field(default=15000, ge=1)
    github_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("NUGET_README_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )

    # In-process cache
    cache_ttl_ms: int = Field(default=3_600_000, ge=1)
    cache_max_size_bytes: int = Field(default=104_857_600, ge=1)
    cache_sweep_interval_ms: int = Field(default=300_000, ge=1)
    search_cache_ttl_ms: int = Field(default=600_000, ge=1)
    not_found_cache_ttl_ms: int = Field(default=300_000, ge=1)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str = "readme"
    port: int = 8000
    host: str = "0.0.0.0"


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
