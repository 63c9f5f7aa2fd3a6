import os

# Database
POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
POSTGRES_DB = os.getenv("POSTGRES_DB", "academy")
POSTGRES_HOST = os.getenv("POSTGRES_HOST", "db")
POSTGRES_PORT = os.getenv("POSTGRES_PORT", "5432")

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql+asyncpg://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

# Environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "production").lower()
DEBUG = ENVIRONMENT in ["development", "dev"]

# Database retry policy
DB_RETRY_ATTEMPTS = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
DB_RETRY_DELAY = float(os.getenv("DB_RETRY_DELAY", "1.0"))
DB_RETRY_BACKOFF_FACTOR = float(os.getenv("DB_RETRY_BACKOFF_FACTOR", "2.0"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if not DEBUG else "text")

# Application
APP_NAME = os.getenv("APP_NAME", "Academy API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS", "http://localhost:3000,http://localhost:5173,http://localhost:8080"
    ).split(",")
    if origin.strip()
]

# Tokens issued by the hosted identity provider
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "authenticated")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# First administrator, created on startup when no admin exists yet
BOOTSTRAP_ADMIN_AUTH_ID = os.getenv("BOOTSTRAP_ADMIN_AUTH_ID")
BOOTSTRAP_ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL")
BOOTSTRAP_ADMIN_NAME = os.getenv("BOOTSTRAP_ADMIN_NAME", "Administrator")

# Rate limiting
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
RATE_LIMIT_DEFAULT = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")

# Academy calendar
ACADEMY_TIMEZONE = os.getenv("ACADEMY_TIMEZONE", "Asia/Manila")
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "6"))

# Coach account provisioning (server-side function of the identity provider)
COACH_PROVISIONING_URL = os.getenv("COACH_PROVISIONING_URL")
COACH_PROVISIONING_KEY = os.getenv("COACH_PROVISIONING_KEY")
COACH_PROVISIONING_TIMEOUT = float(os.getenv("COACH_PROVISIONING_TIMEOUT", "10.0"))
COACH_DEFAULT_PASSWORD = os.getenv("COACH_DEFAULT_PASSWORD", "TOcoachAccount!1")


def validate_config():
    """Validate settings at startup"""
    errors = []

    if not JWT_SECRET_KEY:
        errors.append("JWT_SECRET_KEY is required")

    if not DATABASE_URL:
        errors.append("DATABASE_URL is required")

    if DB_RETRY_ATTEMPTS < 1:
        errors.append("DB_RETRY_ATTEMPTS must be >= 1")

    if DB_RETRY_DELAY < 0:
        errors.append("DB_RETRY_DELAY must be >= 0")

    if DEFAULT_PAGE_SIZE < 1:
        errors.append("DEFAULT_PAGE_SIZE must be >= 1")

    if errors:
        raise ValueError(f"Configuration errors: {'; '.join(errors)}")
