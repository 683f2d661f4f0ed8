"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./rsvp_manager.db")

    # Security
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "admin_token_123")
    CRON_SECRET: str = os.getenv("CRON_SECRET", "cron_secret_123")

    # Application
    BASE_URL: str = os.getenv("BASE_URL", "http://localhost:8000")
    EVENT_TIMEZONE: str = os.getenv("EVENT_TIMEZONE", "Asia/Jerusalem")
    DEFAULT_COUNTRY: str = os.getenv("DEFAULT_COUNTRY", "IL")

    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # File limits
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30

    # Notifications
    NOTIFICATION_CACHE_TTL: int = 60  # seconds
    TWILIO_API_BASE: str = os.getenv("TWILIO_API_BASE", "https://api.twilio.com/2010-04-01")
    TWILIO_VALIDATE_SIGNATURE: bool = os.getenv("TWILIO_VALIDATE_SIGNATURE", "true").lower() in ("1", "true", "yes")

    # Automation sweep
    AUTOMATION_BATCH_SIZE: int = 100
    AUTOMATION_MAX_RETRIES: int = 3
    AUTOMATION_RETRY_DELAY_HOURS: int = 1

    # Bulk messaging
    BULK_MAX_ATTEMPTS: int = 3
    BULK_BATCH_SIZE: int = 50

    # Gemini invitation images
    GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY")
    GEMINI_RETRY_MAX_ATTEMPTS: int = 3
    GEMINI_RETRY_MIN_WAIT: float = 2.0
    GEMINI_RETRY_MAX_WAIT: float = 10.0
    INVITATION_PROMPT: str = os.getenv(
        "INVITATION_PROMPT",
        "Edit this wedding invitation image. Replace the following text exactly, "
        "keeping the original fonts, colors, layout and decorations unchanged:\n"
        "{{FIELD_REPLACEMENTS}}\n"
        "Do not add, remove or move any other element.",
    )

    class Config:
        env_file = ".env"

settings = Settings()
