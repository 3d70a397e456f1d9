"""
Configuration management for annotation-ledger.

Settings are an immutable snapshot. Components receive one at construction
time; changing a value produces a new snapshot through ``with_updates``.
"""

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Application
    app_name: str = "Annotation Ledger"
    debug: bool = False
    environment: str = "development"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1

    # Database
    database_url: str = "sqlite:///./annotation_ledger.db"
    pool_size: int = 20
    max_overflow: int = 30

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # Corpus ingestion
    ingest_batch_size: int = Field(default=500, ge=1)

    # Revision log
    log_page_limit: int = Field(default=50, ge=1, le=1000)

    def with_updates(self, **changes: Any) -> "Settings":
        """Return a new settings snapshot with ``changes`` applied.

        Unknown keys are ignored so that a raw settings form can be passed
        through as-is.
        """
        known = {k: v for k, v in changes.items() if k in type(self).model_fields}
        return self.model_validate({**self.model_dump(), **known})


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
