"""
Environment-aware configuration.
Values come from the environment (a .env file is read if present).
"""
import os
from dotenv import load_dotenv

load_dotenv()  # Read .env if present

_DEV_ACCESS_SECRET = "dev-access-secret-change-me"
_DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"
_DEV_ORIGINS = "http://localhost:3000,http://localhost:3001,http://localhost:5173"


def _split(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


class BaseConfig:
    # Flask signs its own cookies/sessions with this
    SECRET_KEY = os.getenv("COOKIE_SECRET", "dev-cookie-secret-change-me")
    DEBUG = False
    TESTING = False

    # Two independent signing secrets: one per token kind
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", _DEV_ACCESS_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", _DEV_REFRESH_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ACCESS_EXPIRES_IN = os.getenv("JWT_ACCESS_EXPIRES_IN", "15m")
    JWT_REFRESH_EXPIRES_IN = os.getenv("JWT_REFRESH_EXPIRES_IN", "7d")

    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///auth.db")
    DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "30"))
    SQL_ECHO = False

    # Cookies: HttpOnly + SameSite=Strict, path "/"
    ACCESS_COOKIE_NAME = "accessToken"
    REFRESH_COOKIE_NAME = "refreshToken"
    ACCESS_COOKIE_MAX_AGE = 15 * 60
    REFRESH_COOKIE_MAX_AGE = 7 * 24 * 60 * 60
    COOKIE_SECURE = False

    CORS_ORIGINS = _split(os.getenv("CORS_ORIGINS", _DEV_ORIGINS))

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_REQUESTS = False


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    APP_ENV = "dev"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    LOG_REQUESTS = True


class TestingConfig(BaseConfig):
    TESTING = True
    APP_ENV = "test"
    DATABASE_URL = "sqlite://"
    JWT_ACCESS_SECRET = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "test-refresh-secret-0123456789abcdef"
    # Minimum bcrypt cost keeps the suite fast
    BCRYPT_ROUNDS = 4


class ProductionConfig(BaseConfig):
    DEBUG = False
    APP_ENV = "prod"
    COOKIE_SECURE = True
    # No localhost fallback in production: origins must be configured
    CORS_ORIGINS = _split(os.getenv("CORS_ORIGINS", ""))


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def validate_config(config) -> None:
    """Refuse to run production with missing, default or shared signing secrets."""
    if config.get("DEBUG") or config.get("TESTING"):
        return
    access = config.get("JWT_ACCESS_SECRET")
    refresh = config.get("JWT_REFRESH_SECRET")
    if not access or not refresh or access == _DEV_ACCESS_SECRET or refresh == _DEV_REFRESH_SECRET:
        raise ValueError(
            "JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set in production. "
            "To run in development mode, set APP_ENV=dev."
        )
    if access == refresh:
        raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ.")
