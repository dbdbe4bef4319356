# farmsales/config/settings.py
from decimal import Decimal
from typing import List, Optional
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "Farm Sales Order Management"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Database Settings
    DATABASE_URL: str = "sqlite:///./farmsales.db"
    DATABASE_ECHO: bool = False

    # JWT Settings
    JWT_SECRET_KEY: str = "jwt-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRES: int = 28800  # 8 hours, one farm shift

    # Billing Settings
    VAT_RATE: Decimal = Decimal("0.18")
    PAYMENT_EPSILON: Decimal = Decimal("0.01")
    CHEQUE_MAX_DAYS_AFTER_DELIVERY: int = 14

    # Weighed goods (chicken cuts) are billed on delivered weight
    WEIGHED_GOODS_CATEGORIES: List[str] = ["BT", "LD", "OC", "PS", "WT"]
    WEIGHED_GOODS_NAME_KEYWORD: str = "chicken"

    # Farm clock
    FARM_TIMEZONE: str = "Asia/Colombo"
    WORKING_HOURS_START: int = 6
    WORKING_HOURS_END: int = 18

    # Email Settings
    EMAIL_ENABLED: bool = False
    EMAIL_FROM: str = "billing@farmsales.local"
    SMTP_SERVER: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DIR: str = "logs"
    LOG_FILE: str = "logs/app.log"

    # CORS Settings
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# Environment-specific settings
class DevelopmentSettings(Settings):
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"


class ProductionSettings(Settings):
    DEBUG: bool = False
    LOG_LEVEL: str = "WARNING"


class TestingSettings(Settings):
    DATABASE_URL: str = "sqlite://"
    JWT_ACCESS_TOKEN_EXPIRES: int = 300  # 5 minutes for testing
    EMAIL_ENABLED: bool = False


def get_settings_by_env(env: str = "development") -> Settings:
    if env == "development":
        return DevelopmentSettings()
    elif env == "production":
        return ProductionSettings()
    elif env == "testing":
        return TestingSettings()
    else:
        return Settings()
