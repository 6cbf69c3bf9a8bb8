"""Configuration management for worksync."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SECRET_KEY = "dev-secret-key-change-me"  # noqa: S105


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Runtime environment
    environment: str = Field(default="development", description="Deployment environment name")

    # Storage Configuration
    sqlite_db_path: str = Field(default="data/worksync.db", description="SQLite database file path")
    file_storage_root: str = Field(
        default="data/storage",
        description="Root directory holding one file-library folder per workspace",
    )

    # Session Configuration
    secret_key: str = Field(default=DEFAULT_SECRET_KEY, description="Secret used to sign session tokens")
    session_max_age_seconds: int = Field(default=86400, description="Session token lifetime (in seconds)")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")

    # File Library Limits
    max_upload_files: int = Field(default=100, description="Maximum number of files per upload request")
    max_upload_file_size_bytes: int = Field(
        default=200 * 1024 * 1024, description="Maximum size of a single uploaded file (in bytes)"
    )
    file_activity_default_days: int = Field(default=30, description="Default look-back window for file activity")

    @property
    def is_production(self) -> bool:
        """Whether the service runs in production."""
        return self.environment.lower() == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # Pagination Defaults
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    LIST_BATCH_SIZE: int = 500  # Page size when fetching every matching record

    # File Library
    MAX_FILE_ACTIVITY_DAYS: int = 365
    DOWNLOAD_CHUNK_SIZE: int = 64 * 1024

    # Passwords
    PASSWORD_HASH_ITERATIONS: int = 240_000
    MIN_PASSWORD_LENGTH: int = 8


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
