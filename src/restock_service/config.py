"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "restock-relay"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 4
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "restock"
    postgres_password: str = ""
    postgres_db: str = "restock_relay"
    database_url_override: str = ""
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct PostgreSQL connection URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous PostgreSQL connection URL (for Alembic)."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Shopify (storefront platform)
    # -------------------------------------------------------------------------
    shopify_api_secret: str = ""
    shopify_api_version: str = "2024-07"
    catalog_timeout_seconds: float = 5.0
    catalog_cache_ttl_seconds: int = 3600

    # -------------------------------------------------------------------------
    # WhatsApp (Twilio)
    # -------------------------------------------------------------------------
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    whatsapp_sender: str = "+14155238886"
    whatsapp_ping_content_sid: str = ""
    send_timeout_seconds: float = 10.0

    # -------------------------------------------------------------------------
    # Stripe (billing callback)
    # -------------------------------------------------------------------------
    stripe_webhook_secret: str = ""

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------
    admin_api_key: str = ""
    api_key_header: str = "X-API-Key"

    # -------------------------------------------------------------------------
    # Quota Settings
    # -------------------------------------------------------------------------
    trial_days: int = 14
    trial_monthly_ceiling: int = 50

    # -------------------------------------------------------------------------
    # Restock Dispatch Settings
    # -------------------------------------------------------------------------
    restock_channel: Literal["direct", "ping"] = "ping"
    restock_dispatch_policy: Literal["all", "oldest"] = "all"
    dispatch_batch_limit: int = 100
    dispatch_claim_ttl_seconds: int = 120
    webhook_receipt_retention_hours: int = 24

    # -------------------------------------------------------------------------
    # Limit Notice (email)
    # -------------------------------------------------------------------------
    email_service: Literal["mock"] = "mock"
    email_from_address: str = "alerts@restock-relay.app"
    email_from_name: str = "Back in Stock Alerts"
    upgrade_url: str = "https://restock-relay.app/upgrade"
    mock_email_storage_path: str = "/tmp/restock_mock_emails"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
