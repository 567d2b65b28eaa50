"""Application configuration."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "postgresql+psycopg2://contacts:contacts@db:5432/contacts"

    # Security
    ADMIN_API_KEY: Optional[str] = None  # Unset = maintenance routes are open (internal network only)

    # Batch Reconciliation Configuration
    RETAG_BATCH_SIZE: int = 25
    ENROLLMENT_TAG_BATCH_SIZE: int = 50
    PURCHASER_TAG_BATCH_SIZE: int = 50

    # Segmentation
    SEGMENT_SCAN_LIMIT: int = 5000  # Max contacts loaded per segment query
    SEGMENT_DEFAULT_LIMIT: int = 1000

    # Feature Flags
    ENABLE_SCHEDULED_RECONCILIATION: bool = False
    RECONCILIATION_CRON_HOUR: str = "3"  # UTC

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
