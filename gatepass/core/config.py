# gatepass/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from .env"""

    # === Database ===
    DATABASE_URL: str = "sqlite+aiosqlite:///./gatepass.db"
    DATABASE_TEST_URL: Optional[str] = None

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and ("localhost" in v or v.startswith("sqlite")):
            raise ValueError("🚨 Production environment cannot use a local database!")
        return v

    # === Redis / Celery ===
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # === JWT ===
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 720

    # === CORS ===
    ALLOWED_ORIGINS: List[str] = ["*"]
    ALLOWED_METHODS: List[str] = ["*"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # === System ===
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_DIR: str = "logs"
    TIMEZONE: str = "Africa/Nairobi"

    # === Pagination ===
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # === Business Rules ===
    STAFF_MIN_DURATION_MINUTES: int = 5
    STAFF_MAX_DURATION_MINUTES: int = 60
    APPROVER_MAX_DURATION_MINUTES: int = 120
    DURATION_BOUND_POLICY: str = "reject"  # 'reject' | 'clamp'
    ENFORCE_SINGLE_OPEN_PASS: bool = True
    PLACEHOLDER_REASONS: List[str] = ["personal", "personal reason", "personal reasons"]
    TEMP_PASSWORD_LENGTH: int = 10

    # === Time alerts ===
    ALERT_BACKEND: str = "local"  # 'local' | 'celery'
    ALERT_WARNING_MINUTES: int = 5
    ALERT_CRITICAL_MINUTES: int = 1

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Create a global settings instance
settings = Settings()
