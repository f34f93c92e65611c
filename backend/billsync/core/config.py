# backend/billsync/core/config.py
from typing import List, Optional
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

# Locate the .env file relative to the project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent.parent
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), extra="ignore")

    # Application
    PROJECT_NAME: str = "BillSync"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Auth
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./billsync.db"
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Stripe
    STRIPE_MODE: str = "test"  # test or live
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_SECRET_KEY_TEST: Optional[str] = None
    STRIPE_SECRET_KEY_LIVE: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None
    STRIPE_WEBHOOK_SECRET_TEST: Optional[str] = None
    STRIPE_WEBHOOK_SECRET_LIVE: Optional[str] = None
    STRIPE_API_VERSION: str = "2023-10-16"
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300
    STRIPE_ALLOWED_PRICE_IDS: List[str] = []

    @field_validator("STRIPE_ALLOWED_PRICE_IDS", mode="before")
    @classmethod
    def assemble_price_ids(cls, v):
        if isinstance(v, str):
            return [i.strip() for i in v.split(",") if i.strip()]
        return v

    # Account provisioning (main application)
    PROVISIONING_URL: str = "http://localhost:8001/api/create-account-from-marketing-site"
    PROVISIONING_API_KEY: Optional[str] = None
    PROVISIONING_TIMEOUT_SECONDS: float = 30.0

    # Webhook operations
    WEBHOOK_FAILURE_ALERT_THRESHOLD: int = 3

    # URL
    FRONTEND_URL: str = "http://localhost:5173"

    # Client (subscription status cache / session issuer)
    API_BASE_URL: str = "http://localhost:8000/api/v1/billing"
    STATUS_CACHE_TTL_SECONDS: float = 30.0
    STATUS_FETCH_TIMEOUT_SECONDS: float = 10.0
    CHECKOUT_TIMEOUT_SECONDS: float = 15.0
    PORTAL_TIMEOUT_SECONDS: float = 15.0
    STATUS_RETRY_DELAY_SECONDS: float = 1.0
    STATUS_MAX_RETRIES: int = 1
    STATUS_FALLBACK_SUBSCRIBED: bool = True
    STATUS_FALLBACK_PLAN: str = "free"
    STATUS_FALLBACK_TTL_SECONDS: float = 10.0

    @property
    def stripe_live_mode(self) -> bool:
        return (self.STRIPE_MODE or "test").strip().lower() == "live"

    @property
    def stripe_api_key(self) -> Optional[str]:
        """Secret key for the active mode, falling back to STRIPE_SECRET_KEY."""
        by_mode = self.STRIPE_SECRET_KEY_LIVE if self.stripe_live_mode else self.STRIPE_SECRET_KEY_TEST
        return (by_mode or self.STRIPE_SECRET_KEY or "").strip() or None

    @property
    def stripe_webhook_secret(self) -> Optional[str]:
        """Webhook signing secret for the active mode, falling back to STRIPE_WEBHOOK_SECRET."""
        by_mode = self.STRIPE_WEBHOOK_SECRET_LIVE if self.stripe_live_mode else self.STRIPE_WEBHOOK_SECRET_TEST
        return (by_mode or self.STRIPE_WEBHOOK_SECRET or "").strip() or None


settings = Settings()
