"""Centralized application configuration via environment variables."""

from datetime import timedelta
from enum import StrEnum
from functools import lru_cache

from pydantic import SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Database URL is assembled from individual components to match
    the official PostgreSQL Docker image environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"
    # --- CORS ---
    cors_allowed_origins: list[str] = []
    cors_allow_credentials: bool = False
    cors_allowed_methods: list[str] = ["GET", "POST", "PUT", "DELETE"]
    cors_allowed_headers: list[str] = ["Content-Type", "Authorization", "X-TenantId"]

    # --- PostgreSQL ---
    postgres_user: str = "booking"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "booking"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"

    # --- Cache ---
    # cache_enabled switches the read path off globally; fresh results are
    # still written so the cache is warm once reads are switched back on.
    cache_enabled: bool = True
    # Redis when true, in-process store otherwise.
    cache_distributed_enabled: bool = True
    cache_default_expiration_minutes: int = 30
    cache_instance_name: str = "booking:"
    cache_operation_timeout_seconds: float = 2.0
    cache_purge_interval_seconds: int = 300

    # --- Pipeline ---
    slow_operation_threshold_ms: int = 500

    # --- Tenant resolution ---
    tenant_header_name: str = "X-TenantId"
    tenant_claim_name: str = "tenant_id"
    non_tenant_subdomains: list[str] = ["www", "api"]

    # --- Convenience properties ---
    @property
    def cache_default_expiration(self) -> timedelta:
        return timedelta(minutes=self.cache_default_expiration_minutes)

    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from booking_core.config import get_settings
        settings = get_settings()

    Or for dependency injection in FastAPI::

        @app.get("/")
        def root(settings: Settings = Depends(get_settings)):
            ...
    """
    return Settings()


settings = get_settings()
