from typing import Optional, List
from pydantic_settings import BaseSettings, SettingsConfigDict

from common.core.constants import Environment, LockProviderType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Environment Profile
    environment: Environment = Environment.LOCAL

    # API Settings
    app_name: str = "billing-service"
    api_version: str = "v1"
    debug: bool = False

    # Database Components
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "billing"
    db_use_nullpool: bool = (
        False  # True for one-off jobs (sequential), False for API (concurrent)
    )
    db_pool_size: int = 10
    db_pool_overflow: int = 5

    @property
    def database_url(self) -> str:
        """Construct database URL from components."""
        return f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @property
    def redis_connection_url(self) -> str:
        """Construct Redis URL from components."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        else:
            return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Distributed locks (webhook ordering)
    lock_provider: LockProviderType = LockProviderType.REDIS

    # OpenTelemetry
    otel_service_name: str = "billing-service"
    otel_service_version: str = "0.1.0"

    # Axiom (exporters are skipped when no token is configured)
    axiom_token: str = ""
    axiom_dataset: str = ""

    # Frontend (billing portal return URL)
    frontend_url: str = "http://localhost:3000"

    @property
    def cors_allowed_origins(self) -> List[str]:
        """Auto-select CORS origins based on environment."""
        if self.environment == Environment.LOCAL:
            return [
                "http://localhost:3000",
                "http://localhost:3001",
            ]
        return [self.frontend_url]

    # Billing - Stripe (payments)
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""
    # Stripe price IDs for paid plans
    stripe_price_id_pro: str = ""
    stripe_price_id_enterprise: str = ""

    # Outbound provider calls are bounded; a timeout is an unknown outcome
    billing_provider_timeout_seconds: float = 10.0

    # Per-subscription webhook serialization
    webhook_lock_ttl_seconds: int = 30
    webhook_lock_acquire_timeout_seconds: float = 5.0


settings = Settings()
