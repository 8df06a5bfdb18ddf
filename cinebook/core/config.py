"""
Application configuration and settings
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Database Configuration
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cinebook.db")

# Redis Configuration
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_KEY_PREFIX = os.getenv("REDIS_KEY_PREFIX", "cinebook")

# Booking hold / durable timer
HOLD_DURATION_SECONDS = int(os.getenv("HOLD_DURATION_SECONDS", "600"))  # 10 minutes
HOLD_POLL_INTERVAL_SECONDS = float(os.getenv("HOLD_POLL_INTERVAL_SECONDS", "5"))
HOLD_LEASE_SECONDS = int(os.getenv("HOLD_LEASE_SECONDS", "60"))
HOLD_BATCH_SIZE = int(os.getenv("HOLD_BATCH_SIZE", "50"))
HOLD_RETRY_BASE_SECONDS = int(os.getenv("HOLD_RETRY_BASE_SECONDS", "5"))
HOLD_RETRY_MAX_SECONDS = int(os.getenv("HOLD_RETRY_MAX_SECONDS", "300"))
SHOW_SAVE_RETRIES = int(os.getenv("SHOW_SAVE_RETRIES", "3"))
HOLD_WORKER_ENABLED = _env_bool("HOLD_WORKER_ENABLED", "true")

# Event intake
EVENTS_WEBHOOK_SECRET = os.getenv("EVENTS_WEBHOOK_SECRET", "")

# Identity provider (user sync + admin role lookups)
IDENTITY_API_URL = os.getenv("IDENTITY_API_URL", "https://api.clerk.com/v1")
IDENTITY_SECRET_KEY = os.getenv("IDENTITY_SECRET_KEY", "")
ADMIN_ROLE_CACHE_TTL = int(os.getenv("ADMIN_ROLE_CACHE_TTL", "60"))

# JWT
SECRET_KEY = os.getenv("SECRET_KEY", "supersecretkey")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# SMTP
EMAIL_USER = os.getenv("EMAIL_USER")
EMAIL_PASSWORD = os.getenv("EMAIL_PASSWORD")
SMTP_SERVER = os.getenv("SMTP_SERVER")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SENDER_NAME = os.getenv("SENDER_NAME", "CineBook")


class Settings:
    PROJECT_NAME: str = "CineBook Jobs API"
    VERSION: str = "1.0.0"
    DATABASE_URL = DATABASE_URL
    REDIS_URL = REDIS_URL
    REDIS_KEY_PREFIX = REDIS_KEY_PREFIX
    HOLD_DURATION_SECONDS = HOLD_DURATION_SECONDS
    HOLD_POLL_INTERVAL_SECONDS = HOLD_POLL_INTERVAL_SECONDS
    HOLD_LEASE_SECONDS = HOLD_LEASE_SECONDS
    HOLD_BATCH_SIZE = HOLD_BATCH_SIZE
    HOLD_RETRY_BASE_SECONDS = HOLD_RETRY_BASE_SECONDS
    HOLD_RETRY_MAX_SECONDS = HOLD_RETRY_MAX_SECONDS
    SHOW_SAVE_RETRIES = SHOW_SAVE_RETRIES
    HOLD_WORKER_ENABLED = HOLD_WORKER_ENABLED
    EVENTS_WEBHOOK_SECRET = EVENTS_WEBHOOK_SECRET
    IDENTITY_API_URL = IDENTITY_API_URL
    IDENTITY_SECRET_KEY = IDENTITY_SECRET_KEY
    ADMIN_ROLE_CACHE_TTL = ADMIN_ROLE_CACHE_TTL
    SECRET_KEY = SECRET_KEY
    JWT_ALGORITHM = JWT_ALGORITHM


settings = Settings()
