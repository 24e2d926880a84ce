"""
Application settings using Pydantic.

Provides environment-based configuration loading with KEYSEED_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Identity service
    identity_url: str = "http://localhost/identity"
    identity_token: str | None = None

    # HTTP client settings
    http_timeout: float = 30.0
    http_max_retries: int = 3
    http_retry_backoff_factor: float = 0.5
    http_retry_backoff_max: float = 30.0
    circuit_failure_threshold: int = 5
    circuit_recovery_timeout: int = 60

    # Resolver cache
    resolver_cache_size: int = 1000
    resolver_cache_ttl: int = 3600

    # Scheduling
    max_concurrency: int | None = None  # None = unbounded
    barrier_timeout: float | None = None

    # Default topology
    default_domain_id: str = "default"
    service_domain_name: str = "service_domain"
    service_project_name: str = "service"
    admin_password: str = "secret"
    demo_email_domain: str = "example.com"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "KEYSEED_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
