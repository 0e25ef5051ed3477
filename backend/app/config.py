"""
Application configuration module.
Loads environment variables and provides application-wide settings.
"""
import os
from pathlib import Path

from pydantic import ConfigDict, field_validator
from pydantic_settings import BaseSettings

from backend.app.schemas.common import validate_currency_code

# Get project root (two levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Global flag to indicate test mode (set via --test flag or SAVINGSVAULT_TEST_MODE env var)
_test_mode = os.environ.get("SAVINGSVAULT_TEST_MODE", "").lower() in ("1", "true", "yes")


def set_test_mode(enabled: bool = True):
    """
    Enable/disable test mode globally.
    When enabled, DATABASE_URL will automatically use TEST_DATABASE_URL.

    Args:
        enabled: True to enable test mode, False to disable
    """
    global _test_mode
    _test_mode = enabled
    os.environ["SAVINGSVAULT_TEST_MODE"] = "1" if enabled else "0"


def is_test_mode() -> bool:
    """Check if test mode is enabled."""
    return _test_mode


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables or .env file.
    (Note: Environment variables take precedence over .env file)
    """
    # Database
    DATABASE_URL: str = "sqlite:///./backend/data/sqlite/app.db"
    TEST_DATABASE_URL: str = "sqlite:///./backend/data/sqlite/test_app.db"

    # API
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "SavingsVault"
    VERSION: str = "0.1.0"

    # Server
    PORT: int = 3001

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = True

    # Tokens
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_MINUTES: int = 60

    # Passwords
    BCRYPT_ROUNDS: int = 12
    # Return the generated temporary password in the reset response (demo only)
    EXPOSE_TEMP_PASSWORD: bool = False

    # Ledger
    DEFAULT_CURRENCY: str = "USD"  # ISO 4217
    LEDGER_MAX_RETRIES: int = 10

    # Admin seed (skipped when email or password is empty)
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""
    ADMIN_DEVICE_ID: str = "admin-console"

    # CORS (for frontend development)
    BACKEND_CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:3002",
        "http://localhost:5173",
        ]

    @field_validator("DEFAULT_CURRENCY")
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        return validate_currency_code(v)

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        case_sensitive=True,
        env_file_encoding='utf-8'
        )


def get_settings() -> Settings:
    """
    Get settings instance.

    In test mode, DATABASE_URL is automatically overridden with TEST_DATABASE_URL.

    Returns:
        Settings: Application settings
    """
    settings = Settings()

    # Override DATABASE_URL if in test mode
    if is_test_mode():
        settings.DATABASE_URL = settings.TEST_DATABASE_URL

    return settings
