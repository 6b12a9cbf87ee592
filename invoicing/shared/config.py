"""Shared configuration management for the invoice validation engine.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_ARITHMETIC_TOLERANCE=0.5
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-validation-engine",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # Validation rules
    arithmetic_tolerance: float = Field(
        default=1.0,
        ge=0.0,
        description="Maximum currency difference accepted by arithmetic-consistency checks",
    )
    obsolescence_months: int = Field(
        default=2,
        ge=1,
        description="Default obsolescence window in months (vendors may override)",
    )
    obsolescence_policy: Literal["month_number", "calendar"] = Field(
        default="month_number",
        description=(
            "Date obsolescence check: month_number (compares month numbers only), "
            "calendar (full elapsed months)"
        ),
    )
    confidence_snap_threshold: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Confidence at or above which fields are snapped to 1.0 by default",
    )
    risk_adjustment_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Minimum subtotal confidence accepted without review on POS tickets",
    )

    # Catalog configuration
    default_company_id: int = Field(
        default=1,
        description="Company scope used for fuzzy catalog lookups",
    )
    fuzzy_max_distance: int = Field(
        default=3,
        ge=0,
        description="Maximum edit distance for in-memory fuzzy catalog matches",
    )

    # Queue configuration
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the arq worker",
    )
    queue_max_jobs: int = Field(
        default=10,
        ge=1,
        description="Maximum concurrent jobs per worker",
    )
    queue_job_timeout: int = Field(
        default=300,
        ge=1,
        description="Job timeout in seconds",
    )
    max_concurrent_documents: int = Field(
        default=8,
        ge=1,
        description="Documents validated concurrently by a batch call",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
