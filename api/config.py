"""
Environment-aware configuration.
Secrets, token lifetimes and cookie settings are read here once; the
application factory hands them to the auth services.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_ACCESS_SECRET = "dev-access-secret-change-me"
DEV_REFRESH_SECRET = "dev-refresh-secret-change-me"


def _flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    APP_ENV = os.getenv("APP_ENV", "dev")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///campus-market.db")

    # JWT: access and refresh tokens are signed with different secrets
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET", DEV_ACCESS_SECRET)
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET", DEV_REFRESH_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "campus-market-auth")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("ACCESS_TOKEN_EXPIRES_SECONDS", "900")))
    REFRESH_TOKEN_EXPIRES = timedelta(seconds=int(os.getenv("REFRESH_TOKEN_EXPIRES_SECONDS", str(7 * 24 * 3600))))
    REFRESH_TOKEN_CAP = int(os.getenv("REFRESH_TOKEN_CAP", "10"))

    # Refresh cookie
    REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
    COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None
    PRODUCTION = False

    # Argon2 work factors
    PASSWORD_TIME_COST = int(os.getenv("PASSWORD_TIME_COST", "3"))
    PASSWORD_MEMORY_COST = int(os.getenv("PASSWORD_MEMORY_COST", "65536"))
    PASSWORD_PARALLELISM = int(os.getenv("PASSWORD_PARALLELISM", "4"))


class DevelopmentConfig(BaseConfig):
    DEBUG = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    PRODUCTION = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite:///:memory:"
    JWT_ACCESS_SECRET = "test-access-secret"
    JWT_REFRESH_SECRET = "test-refresh-secret"
    # Cheap hashing keeps the suite fast
    PASSWORD_TIME_COST = 1
    PASSWORD_MEMORY_COST = 1024
    PASSWORD_PARALLELISM = 1


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/prod/test).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig


def check_config(config) -> None:
    """Refuse to boot with unusable secrets."""
    if config["JWT_ACCESS_SECRET"] == config["JWT_REFRESH_SECRET"]:
        raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
    if config.get("PRODUCTION") and (
        config["JWT_ACCESS_SECRET"] == DEV_ACCESS_SECRET
        or config["JWT_REFRESH_SECRET"] == DEV_REFRESH_SECRET
    ):
        raise RuntimeError("JWT secrets must be set in the environment for production")
