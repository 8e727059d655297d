"""
tms/config/settings.py
Environment-driven settings

All runtime configuration is read from environment variables.
A .env file at the project root is loaded first (values already present
in the process environment win).
"""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE = PROJECT_ROOT / ".env"

load_dotenv(dotenv_path=ENV_FILE)


def get_bool_env(key: str, default: bool = False) -> bool:
    """Get a boolean value from environment variable."""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on', 'enabled')


def get_int_env(key: str, default: int) -> int:
    """Get an integer value from environment variable, falling back on garbage."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_list_env(key: str) -> List[str]:
    """Comma separated list, empty items dropped."""
    return [item.strip() for item in os.getenv(key, "").split(",") if item.strip()]


class Settings:
    """
    Application settings.

    To add a setting:
    1. Add it here as a class attribute
    2. Load it from an environment variable with a safe default
    """

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Persistence
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tms.db")
    SQL_ECHO: bool = get_bool_env("SQL_ECHO", False)
    DB_POOL_SIZE: int = get_int_env("DB_POOL_SIZE", 20)
    DB_MAX_OVERFLOW: int = get_int_env("DB_MAX_OVERFLOW", 30)

    # Identity provider tokens
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-in-production")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_AUDIENCE: Optional[str] = os.getenv("JWT_AUDIENCE") or None

    # HTTP
    ALLOWED_ORIGINS: List[str] = get_list_env("ALLOWED_ORIGINS")
    SUBMIT_RATE_LIMIT: str = os.getenv("SUBMIT_RATE_LIMIT", "30/minute")

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT == "development"

    @classmethod
    def as_dict(cls) -> dict:
        """Non-secret settings for diagnostics."""
        return {
            "environment": cls.ENVIRONMENT,
            "database_backend": cls.DATABASE_URL.split(":", 1)[0],
            "jwt_algorithm": cls.JWT_ALGORITHM,
            "jwt_audience": cls.JWT_AUDIENCE,
            "submit_rate_limit": cls.SUBMIT_RATE_LIMIT,
        }


settings = Settings()
