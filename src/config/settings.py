"""Safety store settings loaded from environment variables."""

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment."""

    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class LogLevel(StrEnum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Store settings loaded from environment variables / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Persistence ---
    STORAGE_NAME: str = Field(
        default="safety-dashboard-storage",
        min_length=1,
        description="Key under which the store snapshot is persisted.",
    )
    STORAGE_PATH: str = Field(
        default="./.safety-store",
        description="Root directory of the file storage medium.",
    )
    PERSIST_ON_MUTATION: bool = Field(
        default=True,
        description="Save the snapshot after every mutation.",
    )

    # --- Undo/redo ---
    UNDO_LIMIT: int = Field(
        default=50,
        ge=1,
        description="Maximum number of actions kept on the undo log.",
    )

    # --- Audit ---
    CHANGE_ACTOR: str = Field(
        default="user",
        min_length=1,
        description="Label written to change records as changed_by.",
    )

    # --- Logging ---
    LOG_LEVEL: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application log level.",
    )

    # --- Environment ---
    ENVIRONMENT: Environment = Field(
        default=Environment.DEV,
        description="Deployment environment (dev/staging/prod).",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.ENVIRONMENT == Environment.PROD


def get_settings() -> Settings:
    """Factory for the composition root and scripts."""
    return Settings()
