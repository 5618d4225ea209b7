"""Configuration module for the Memory Keeper reminder engine.

This module provides configuration settings using Pydantic Settings.
Environment variables can be used to override default values.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings for the reminder engine.

    All settings can be overridden via environment variables.
    Example: export SMTP_USER="mailer@example.com"
    """

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./memory_keeper.db"
    """Database connection URL. Default: SQLite file in current directory"""

    # API Server Configuration
    API_HOST: str = "0.0.0.0"
    """API server host address"""

    API_PORT: int = 5005
    """API server port"""

    # Scheduler Configuration
    TIMEZONE: str = "UTC"
    """IANA timezone whose calendar decides what 'today' is"""

    SCHEDULER_ENABLED: bool = True
    """Enable/disable the daily reminder tick inside the API process"""

    DAILY_RUN_TIME: str = "09:00"
    """Local wall-clock time (HH:MM) of the daily tick"""

    SCHEDULER_MAX_CONCURRENCY: int = 8
    """Maximum number of reminders dispatched at the same time within a tick"""

    # Mail Configuration
    MAIL_TRANSPORT: str = "smtp"
    """Outbound mail transport: 'smtp' or 'http' (mail relay API)"""

    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_SECURE: bool = False
    """Use implicit TLS (SMTP_SSL) instead of STARTTLS"""

    SMTP_USER: Optional[str] = None
    SMTP_PASS: Optional[str] = None
    """Without both SMTP_USER and SMTP_PASS, dispatch runs in simulated mode"""

    FROM_EMAIL: Optional[str] = None
    """Sender address. Default: SMTP_USER"""

    MAIL_API_URL: Optional[str] = None
    """Mail relay endpoint used when MAIL_TRANSPORT is 'http'"""

    MAIL_API_KEY: Optional[str] = None
    MAIL_TIMEOUT: float = 30.0
    """Timeout in seconds for one outbound send"""

    APP_URL: str = "http://localhost:5000"
    """Link rendered in the footer of every notification"""

    class Config:
        """Pydantic config"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
