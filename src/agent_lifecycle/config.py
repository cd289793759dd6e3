"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, PostgresDsn, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Agent Lifecycle API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Comma-separated browser origins; development falls back to the local dashboard
    cors_origins: str = ""

    # Database (required - no default)
    database_url: PostgresDsn = Field(
        description="PostgreSQL connection URL. Must be set via environment variable."
    )
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Expiry sweep (nightly, 02:00 by default)
    expiry_batch_size: int = Field(default=100, ge=1, le=10_000)
    expiry_scan_hour: int = Field(default=2, ge=0, le=23)
    expiry_scan_minute: int = Field(default=0, ge=0, le=59)

    # License renewal reminders
    reminder_offsets_days: list[int] = [30, 15, 7, 0]
    reminder_dispatch_hour: int = Field(default=6, ge=0, le=23)
    reminder_max_retries: int = Field(default=3, ge=1)
    expiring_soon_days: int = 30

    # Step retry policy shared by termination and reinstatement processes
    step_retry_initial_interval: float = 1.0  # seconds
    step_retry_backoff_coefficient: float = 2.0
    step_retry_maximum_interval: float = 30.0  # seconds
    step_retry_maximum_attempts: int = Field(default=3, ge=1)

    # Agent status processes
    reinstatement_timeout_days: int = 30
    archive_retention_years: int = 7
    process_resume_interval_minutes: int = 5
    process_lease_seconds: int = 300

    # External collaborators
    portal_service_url: str = "http://portal-service:8080"
    commission_service_url: str = "http://commission-service:8080"
    document_service_url: str = "http://document-service:8080"
    notification_service_url: str = "http://notification-service:8080"
    collaborator_timeout: float = 10.0

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings for deployment requirements."""
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG mode cannot be enabled in production environment. "
                "This would expose API documentation and detailed error messages."
            )

        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        if "*" in origins:
            raise ValueError(
                "CORS_ORIGINS cannot contain '*' wildcard when credentials are allowed. "
                "Specify explicit origins."
            )
        if self.environment == "production" and not origins:
            raise ValueError(
                "CORS_ORIGINS must be set in production. "
                "Example: CORS_ORIGINS=https://ops.example.com"
            )

        url = str(self.database_url)
        if not url.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL URL starting with 'postgresql://' or 'postgres://'"
            )

        if any(offset < 0 for offset in self.reminder_offsets_days):
            raise ValueError("REMINDER_OFFSETS_DAYS must not contain negative values")

        if self.step_retry_backoff_coefficient < 1.0:
            raise ValueError("STEP_RETRY_BACKOFF_COEFFICIENT must be at least 1.0")

        return self

    @property
    def allowed_origins(self) -> list[str]:
        """Origins allowed to call the API from a browser."""
        raw = self.cors_origins
        if not raw and self.environment == "development":
            raw = "http://localhost:3000"
        return [
            origin.strip()
            for origin in raw.split(",")
            if origin.strip().startswith(("http://", "https://"))
        ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL for SQLAlchemy with asyncpg.

        Converts sslmode parameter to ssl for asyncpg compatibility.
        """
        url = str(self.database_url)
        url = url.replace("postgresql://", "postgresql+asyncpg://")
        url = url.replace("sslmode=", "ssl=")
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
