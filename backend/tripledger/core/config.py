"""
Application configuration and environment settings.
"""
from decimal import Decimal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from typing import List, Union


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Application
    APP_NAME: str = "Tripledger"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./tripledger.db"
    DB_ECHO: bool = False

    # JWT
    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7

    # CORS
    CORS_ORIGINS: Union[List[str], str] = ["http://localhost:3000", "http://localhost:8080"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    # Exchange Rate
    FX_API_KEY: str = ""
    FX_BASE_CURRENCY: str = "USD"
    FX_API_TIMEOUT: float = 10.0

    # Settlement
    SETTLEMENT_TOLERANCE: Decimal = Decimal("0.01")  # Balances within this of zero count as settled

    @field_validator("FX_BASE_CURRENCY")
    @classmethod
    def upper_base_currency(cls, v: str) -> str:
        return v.strip().upper()


settings = Settings()
