# app/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import validator
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from .env"""

    # === Database ===
    DATABASE_URL: str = "sqlite+aiosqlite:///./pg_salary.db"
    DATABASE_TEST_URL: Optional[str] = None
    AUTO_CREATE_TABLES: bool = False

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        """Ensure database URL is safe for current environment"""
        env = os.getenv("ENVIRONMENT", "development").lower()
        if env == "production" and ("localhost" in v or v.startswith("sqlite")):
            raise ValueError("🚨 Production environment cannot use a local database!")
        return v

    # === JWT ===
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # === CORS ===
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:5173"]
    ALLOWED_METHODS: List[str] = ["*"]
    ALLOWED_HEADERS: List[str] = ["*"]

    # === File Upload ===
    UPLOAD_PATH: str = "uploads"
    MAX_RECEIPT_SIZE: int = 5 * 1024 * 1024  # 5MB

    # === System ===
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    TIMEZONE: str = "Asia/Kolkata"

    # === Business Rules ===
    SALARY_MIN_YEAR: int = 2020
    SALARY_MAX_YEAR: int = 2030
    SALARY_EDIT_LOCK_HOURS: int = 4
    SALARY_NUMERIC_COERCION: str = "zero"  # 'zero' | 'reject'

    @validator("SALARY_NUMERIC_COERCION")
    def validate_coercion(cls, v):
        if v not in ("zero", "reject"):
            raise ValueError("SALARY_NUMERIC_COERCION must be 'zero' or 'reject'")
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Create a global settings instance
settings = Settings()
