"""
Application configuration using pydantic-settings.
Loads from environment variables / .env file.
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "prosets"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # API Server
    host: str = "0.0.0.0"
    port: int = 4000
    cors_origins: List[str] = ["http://localhost:3000"]
    frontend_url: str = "http://localhost:3000"

    # Postgres
    database_url: str = ""

    # Redis (webhook dedupe cache + Celery broker)
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 2.0

    # Auth0
    auth0_domain: str = ""
    auth0_audience: str = ""

    # Stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_currency: str = "eur"

    # AWS S3 (or any S3-compatible store)
    aws_region: str = "eu-west-3"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    s3_bucket_private: str = "prosets-source"
    s3_bucket_public: str = "prosets-preview"
    s3_endpoint_url: Optional[str] = None

    # Timeout applied to every Stripe / S3 call (seconds)
    external_timeout_seconds: float = 10.0

    # Download issuance policy
    download_default_expiration: int = 300
    download_min_expiration: int = 60
    download_max_expiration: int = 3600
    download_rate_limit: int = 5
    download_rate_window_seconds: int = 3600

    # Checkout
    checkout_pending_window_minutes: int = 30

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
