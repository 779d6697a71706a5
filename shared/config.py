"""
Shared configuration management for the Rabita image gateway.
"""

from typing import List, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="RABITA_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    cors_origins: List[str] = Field(default_factory=list)

    # Rate limiting
    rate_limit_max_requests: int = Field(default=100, gt=0)
    rate_limit_window_seconds: int = Field(default=60, gt=0)
    rate_limit_sweep_interval_seconds: float = Field(default=60.0, gt=0)
    rate_limit_backend: str = Field(default="memory", pattern="^(memory|redis)$")
    redis_url: str = Field(default="redis://localhost:6379/0")

    # Client identity. Only enable when a trusted reverse proxy sets
    # X-Forwarded-For / X-Real-IP at the hop in front of this service.
    trust_proxy_headers: bool = Field(default=True)

    # Token redemption
    token_scheme: str = Field(default="signed", pattern="^(signed|sealed)$")
    token_secret: Optional[SecretStr] = Field(default=None)
    token_audience: Optional[str] = Field(default=None)
    token_private_key: Optional[SecretStr] = Field(default=None)

    # Upstream image origin
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)
    upstream_user_agent: str = Field(default="Rabita-Image-Proxy/1.0")
    allowed_image_hosts: List[str] = Field(default_factory=list)


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
