"""
Environment-aware configuration.
Values come from the process environment, with a .env file read if present.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present

DEV_JWT_SECRET = "dev-secret-change-me"


def _env_bool(key: str, default: str = "false") -> bool:
    return os.getenv(key, default).lower() in ("1", "true", "yes")


def _env_int(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    # Cookies are sent cross-origin, so CORS needs an explicit origin, never '*'
    FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", FRONTEND_URL)

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///lectgen-auth.db")
    SQL_ECHO = _env_bool("SQL_ECHO")

    # Token signer
    JWT_SECRET = os.getenv("JWT_SECRET", DEV_JWT_SECRET)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "lectgen-auth")
    ACCESS_TOKEN_EXPIRES = timedelta(seconds=_env_int("ACCESS_TOKEN_EXPIRES_SECONDS", 900))

    # Session lifetimes (reset-token TTL is fixed in services.auth)
    REFRESH_SESSION_TTL = timedelta(days=_env_int("REFRESH_SESSION_TTL_DAYS", 30))
    OAUTH_STATE_TTL = timedelta(minutes=_env_int("OAUTH_STATE_TTL_MINUTES", 10))
    SESSION_SWEEP_INTERVAL_SECONDS = _env_int("SESSION_SWEEP_INTERVAL_SECONDS", 3600)
    START_SWEEPER = _env_bool("START_SWEEPER")

    # Credential hasher work factor
    PASSWORD_MIN_LENGTH = 12
    ARGON2_TIME_COST = _env_int("ARGON2_TIME_COST", 3)
    ARGON2_MEMORY_COST = _env_int("ARGON2_MEMORY_COST", 65536)
    ARGON2_PARALLELISM = _env_int("ARGON2_PARALLELISM", 4)

    # Cookie contract
    REFRESH_COOKIE_NAME = "refreshToken"
    CSRF_COOKIE_NAME = "csrfToken"
    CSRF_HEADER_NAME = "X-CSRF-Token"
    SECURE_COOKIES = _env_bool("SECURE_COOKIES")

    DEFAULT_MONTHLY_QUOTA = _env_int("DEFAULT_MONTHLY_QUOTA", 5)
    REVOKE_SESSIONS_ON_PASSWORD_RESET = _env_bool("REVOKE_SESSIONS_ON_PASSWORD_RESET")

    # Google sign-in
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.getenv("GOOGLE_CLIENT_SECRET", "")
    GOOGLE_REDIRECT_URI = os.getenv("GOOGLE_REDIRECT_URI", "http://localhost:8000/api/v1/auth/google/callback")
    OAUTH_HTTP_MAX_ATTEMPTS = _env_int("OAUTH_HTTP_MAX_ATTEMPTS", 3)

    # Reset-link mail delivery
    SMTP_HOST = os.getenv("SMTP_HOST", "")
    SMTP_PORT = _env_int("SMTP_PORT", 587)
    SMTP_USER = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS = _env_bool("SMTP_USE_TLS", "true")
    MAIL_FROM = os.getenv("MAIL_FROM", "")
    MAIL_MAX_ATTEMPTS = _env_int("MAIL_MAX_ATTEMPTS", 3)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    DEBUG = False
    SECURE_COOKIES = _env_bool("SECURE_COOKIES", "true")


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    JWT_SECRET = "test-secret-key-with-enough-length-for-hs256"
    FRONTEND_URL = "http://frontend.test"
    CORS_ORIGINS = FRONTEND_URL
    # cheap hashing keeps the suite fast; parameters still round-trip through argon2
    ARGON2_TIME_COST = 1
    ARGON2_MEMORY_COST = 8
    ARGON2_PARALLELISM = 1
    GOOGLE_CLIENT_ID = "test-client"
    GOOGLE_CLIENT_SECRET = "test-secret"
    GOOGLE_REDIRECT_URI = "http://localhost/api/v1/auth/google/callback"
    START_SWEEPER = False
    SECURE_COOKIES = False


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/prod/test).
    """
    if name:
        name = name.lower()
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
