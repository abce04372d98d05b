from decimal import Decimal
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./mentormarket.db"

    # JWT Authentication
    SECRET_KEY: str = "dev-only-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = True
    CORS_ORIGINS: List[str] = [
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # Email Configuration
    EMAIL_NOTIFICATIONS_ENABLED: bool = True
    SMTP_SERVER: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    EMAIL_FROM: Optional[str] = None
    EMAIL_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT_SECONDS: int = 8

    # Money
    CURRENCY: str = "USD"
    PLATFORM_FEE_PERCENTAGE: Decimal = Decimal("0.15")
    MIN_CHARGE_AMOUNT: Decimal = Decimal("1.00")
    MIN_PAYOUT_AMOUNT: Decimal = Decimal("10.00")
    MAX_PAYOUT_AMOUNT: Decimal = Decimal("10000.00")
    AUTO_PAYOUT_ENABLED: bool = True

    # Scheduling policy
    CANCELLATION_CUTOFF_HOURS: int = 2
    ONE_TIME_DURATION_TOLERANCE_MINUTES: int = 5
    MIN_SESSION_MINUTES: int = 15
    MAX_SESSION_MINUTES: int = 480
    SUBSCRIPTION_PERIOD_DAYS: int = 30

    # Payment gateway webhook (HMAC-SHA256 of the raw body, hex encoded)
    PAYMENT_WEBHOOK_SECRET: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
