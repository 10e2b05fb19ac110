"""
Shared configuration management for the Emote Catalog service.
"""

from typing import List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="EMOTES_",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"
    version: str = "1.0.0"

    # Listener
    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "EMOTES_PORT"))

    # Marketplace
    marketplace_url: str = "https://api.roblox.com/marketplace/productinfo"
    marketplace_timeout_seconds: float = 5.0
    marketplace_user_agent: str = "EmoteDiscoveryService/1.0"

    # Catalog cache
    cache_ttl_seconds: float = 300.0
    refresh_batch_size: int = 5
    refresh_batch_delay_seconds: float = 1.0
    default_query_limit: int = 50
    warm_cache_on_startup: bool = True

    # Rate limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: float = 60.0
    rate_limit_sweep_interval_seconds: float = 300.0

    # CORS
    cors_allow_origins: List[str] = ["*"]


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str


def get_config(service_name: str, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, **overrides)
