"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Treasury Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./treasury_ledger.db"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Ledger
    # How many times the balance compare-and-swap is attempted before
    # the engine gives up and compensates.
    BALANCE_UPDATE_MAX_ATTEMPTS: int = int(
        os.getenv("BALANCE_UPDATE_MAX_ATTEMPTS", "3")
    )
    TRANSACTIONS_PAGE_LIMIT: int = int(
        os.getenv("TRANSACTIONS_PAGE_LIMIT", "1000")
    )
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "SAR")


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls.
    """
    return Settings()
