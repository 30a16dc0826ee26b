"""Configuration schema using Pydantic.

Persisted as camelCase JSON in ~/.noderpc/config.json; proxy settings come from the environment.
"""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkConfig(BaseModel):
    """Remote node endpoint."""
    url: str = ""
    name: str = "default"  # Shown in connection errors
    extra_headers: dict[str, str] = Field(default_factory=dict)  # Sent with every request, e.g. API keys
    timeout: float | None = None  # Per-attempt timeout in seconds; transport default when unset


class RetryConfig(BaseModel):
    """Bounds for retrying rate-limited (HTTP 429) requests."""
    max_retries: int = Field(default=6, ge=0)
    max_wait_seconds: int = Field(default=5, ge=0)


class ProxyConfig(BaseSettings):
    """Proxy selection inputs, read from http_proxy / no_proxy (any case)."""
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    http_proxy: str | None = None
    no_proxy: str | None = None


class Config(BaseSettings):
    """Root configuration for noderpc."""
    model_config = SettingsConfigDict(env_prefix="NODERPC_", env_nested_delimiter="__", extra="ignore")

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    proxy: ProxyConfig = Field(default_factory=ProxyConfig)
