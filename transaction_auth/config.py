"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode secrets or connection strings in code.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Transaction Authorization Service"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/transaction_auth"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "console")

    # Bearer tokens
    JWT_SECRET: str = os.getenv("JWT_SECRET", "dev-jwt-secret-change-in-production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    PARTIAL_TOKEN_HOURS: int = int(os.getenv("PARTIAL_TOKEN_HOURS", "24"))
    FULL_TOKEN_HOURS: int = int(os.getenv("FULL_TOKEN_HOURS", "12"))

    # Lockout
    MAX_FAILED_LOGIN_ATTEMPTS: int = int(os.getenv("MAX_FAILED_LOGIN_ATTEMPTS", "5"))
    LOCKOUT_MINUTES: int = int(os.getenv("LOCKOUT_MINUTES", "30"))

    # Step-up (TOTP)
    TOTP_ISSUER: str = os.getenv("TOTP_ISSUER", "Secure Transaction System")
    TOTP_VALID_WINDOW: int = int(os.getenv("TOTP_VALID_WINDOW", "1"))

    # Transaction gating
    STEP_UP_THRESHOLD: Decimal = Decimal(os.getenv("STEP_UP_THRESHOLD", "1000"))
    APPROVAL_THRESHOLD: Decimal = Decimal(os.getenv("APPROVAL_THRESHOLD", "5000"))

    # Rate limiting (fixed window)
    LOGIN_RATE_LIMIT: int = int(os.getenv("LOGIN_RATE_LIMIT", "5"))
    LOGIN_RATE_WINDOW_SECONDS: int = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", "900"))
    TRANSACTION_RATE_LIMIT: int = int(os.getenv("TRANSACTION_RATE_LIMIT", "10"))
    TRANSACTION_RATE_WINDOW_SECONDS: int = int(
        os.getenv("TRANSACTION_RATE_WINDOW_SECONDS", "60")
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. This avoids reading
    environment variables repeatedly.
    """
    return Settings()
