"""
Application settings using Pydantic.

Provides environment-based configuration loading with CARDINANNY_ prefix.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CARDINANNY_",
    )

    # Prometheus
    prometheus_config_file: str = "./prometheus.yml"
    prometheus_url: str = "http://localhost:9090"

    # Remediation policy
    cardinality_label_limit: int = Field(default=1_000_000, gt=0)
    scan_interval_seconds: float = Field(default=120.0, gt=0)

    # HTTP client settings
    http_timeout: float = 30.0

    # Status server
    status_host: str = "0.0.0.0"
    status_port: int = 8080

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
