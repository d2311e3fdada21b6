"""
Shared configuration management for the licensing services.
"""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PRODUCT_VERSION = "3.4.1"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="LICENSING_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local", description="Deployment environment name")
    log_level: str = Field(default="info")

    # Identity reported to HQ
    license: str = Field(default="community", description="License identifier")
    license_key: Optional[str] = Field(default=None)
    product_version: str = Field(default=DEFAULT_PRODUCT_VERSION)
    app_name: Optional[str] = Field(default=None)

    # HQ endpoint
    hq_endpoint: str = Field(default="https://hq.example.com/api/v3/licenses/check")
    request_timeout: float = Field(default=5.0, gt=0)
    offline: bool = Field(default=False, description="Answer checks locally without calling HQ")

    # Verdict caching
    cache_ttl_seconds: int = Field(default=6 * 60 * 60, gt=0)
    failure_cache_ttl_seconds: int = Field(default=5 * 60, gt=0)
    cache_backend: Literal["memory", "redis"] = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
