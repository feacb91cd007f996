# app/config.py
import os
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


class Settings(BaseSettings):
    """Application configuration based on environment variables"""

    # Gemini configuration (the API key is required)
    GEMINI_API_KEY: str
    GEMINI_MODEL: str = "gemini-1.5-flash"
    GEMINI_TIMEOUT_SECONDS: float = 60.0

    # Server configuration
    PORT: int = 5000
    API_PREFIX: str = ""

    # CORS configuration (Frontend URLs)
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5000",
    ]

    # Temporary storage for uploads and rendered reports
    UPLOAD_DIR: str = "uploads"
    REPORTS_DIR: str = "reports"
    STALE_FILE_MAX_AGE_SECONDS: int = 3600

    # Static front-end, mounted at "/" when the directory exists
    STATIC_DIR: str = "public"

    # Debug mode
    DEBUG: bool = os.getenv("DEBUG", "False").lower() == "true"
    LOG_LEVEL: str = "INFO"

    # Maximum file size for uploads (in bytes)
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10 MB

    @field_validator("GEMINI_API_KEY")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("GEMINI_API_KEY cannot be empty")
        return v

    class Config:
        env_file = ".env"
        extra = "ignore"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Return settings with caching"""
    return Settings()
