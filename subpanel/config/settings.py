"""
Configuration settings for the subscription panel payment layer
Handles environment variables and application settings
"""
from typing import Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "subpanel"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"

    # Public URL of the panel, used for return/notify URLs
    APP_URL: str = "http://localhost:7001"

    # Server bind address for `python -m subpanel`
    HOST: str = "0.0.0.0"
    PORT: int = 7001

    # Database
    DATABASE_URL: str = "sqlite:///./subpanel.db"

    # Currency the panel prices orders in (minor units)
    BASE_CURRENCY: str = "CNY"

    # Exchange rates
    FX_PRIMARY_URL: str = "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@latest/v1/currencies/{base}.min.json"
    FX_SECONDARY_URL: str = "https://api.exchangerate-api.com/v4/latest/{base}"
    FX_CACHE_TTL_SECONDS: int = 300
    FX_TIMEOUT_SECONDS: float = 10.0
    # e.g. FX_FIXED_RATES='{"cny_usd": 0.14, "cny_eur": 0.13}'
    FX_FIXED_RATES: Dict[str, float] = {}

    # Stripe
    STRIPE_TIMEOUT_SECONDS: int = 10

    # Telegram operator alerts
    TELEGRAM_BOT_TOKEN: Optional[str] = None
    # Comma separated, e.g. "123456,789012"
    TELEGRAM_ADMIN_CHAT_IDS: str = ""
    TELEGRAM_API_BASE: str = "https://api.telegram.org"
    TELEGRAM_TIMEOUT_SECONDS: float = 5.0

    @property
    def telegram_admin_chat_ids(self) -> List[str]:
        return [chat_id.strip() for chat_id in self.TELEGRAM_ADMIN_CHAT_IDS.split(",") if chat_id.strip()]

    @field_validator("FX_FIXED_RATES")
    @classmethod
    def normalize_rate_keys(cls, v):
        return {key.strip().lower(): float(rate) for key, rate in v.items()}

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


# Create settings instance
settings = Settings()


if settings.ENVIRONMENT == "development":
    settings.DEBUG = True


def validate_settings(config: Settings = None):
    """Validate critical settings"""
    config = config or settings
    issues = []

    if len(config.BASE_CURRENCY) != 3:
        issues.append("BASE_CURRENCY must be an ISO 4217 code")
    if config.FX_CACHE_TTL_SECONDS <= 0:
        issues.append("FX_CACHE_TTL_SECONDS must be positive")

    if config.ENVIRONMENT == "production":
        if config.TELEGRAM_BOT_TOKEN and not config.telegram_admin_chat_ids:
            issues.append("TELEGRAM_ADMIN_CHAT_IDS must be set when TELEGRAM_BOT_TOKEN is set")

    if issues:
        raise ValueError(f"Configuration issues: {', '.join(issues)}")


if settings.ENVIRONMENT == "production":
    validate_settings()
