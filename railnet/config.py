"""Application configuration settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from the environment or a local .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    APP_NAME: str = "Railnet Booking API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Database (DATABASE_URL wins over the parts)
    DB_HOST: str = "localhost"
    DB_PORT: int = 3306
    DB_USER: str = "root"
    DB_PASSWORD: str = "password"
    DB_NAME: str = "railnet"
    DATABASE_URL: str | None = None
    DB_ECHO: bool = False

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str | None = None
    REDIS_DB: int = 0

    # Booking rules
    BOOKING_EXPIRY_MINUTES: int = 10
    CANCELLATION_CUTOFF_HOURS: int = 2
    TICKET_CODE_MAX_ATTEMPTS: int = 5

    # Background jobs
    CLEANUP_INTERVAL_SECONDS: int = 300  # 5 minutes
    STATS_INTERVAL_SECONDS: int = 600  # 10 minutes
    SWEEP_LOCK_TIMEOUT_SECONDS: int = 120
    LOCK_TIMEOUT_SECONDS: int = 30

    # Payment gateway (SSLCommerz)
    SSLCOMMERZ_STORE_ID: str = "testbox"
    SSLCOMMERZ_STORE_PASSWORD: str = "qwerty"
    SSLCOMMERZ_API_URL: str = "https://sandbox.sslcommerz.com"
    PAYMENT_CURRENCY: str = "BDT"
    GATEWAY_TIMEOUT_SECONDS: float = 15.0

    @property
    def database_url(self) -> str:
        """Get async database URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+aiomysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def redis_url(self) -> str:
        """Get Redis URL."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    def payment_callback_url(self, callback: str) -> str:
        """Public URL the gateway calls back, e.g. ``success`` or ``ipn``."""
        return f"{self.PUBLIC_BASE_URL.rstrip('/')}/api/v1/payments/{callback}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
