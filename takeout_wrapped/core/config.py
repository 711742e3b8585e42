"""Configuration management for Takeout Wrapped."""

import os
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"

    # Google Cloud
    google_cloud_project: str = ""
    google_cloud_project_number: str = ""  # Required for service account references
    gcs_bucket_name: str = "takeout-wrapped-storage"
    firestore_database: str = "(default)"

    # API Server
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # YouTube Data API
    youtube_api_key: str = ""
    youtube_batch_size: int = 50
    youtube_batch_delay_seconds: float = 0.2
    youtube_max_concurrency: int = 1
    youtube_timeout_seconds: float = 30.0

    # Pipeline
    processing_capability: Literal["auto", "constrained", "capable"] = "auto"
    constrained_chunk_size: int = 500
    capable_chunk_size: int = 2000
    constrained_cpu_threshold: int = 4
    session_gap_seconds: int = 3600
    stats_timezone: str = "UTC"

    # JWT
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # Frontend
    frontend_url: str = "http://localhost:3000"

    # Cloud Tasks
    cloud_tasks_location: str = "us-central1"
    cloud_tasks_queue: str = "takeout-processing-queue"
    cloud_run_url: str = ""  # Set in production

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def is_constrained(self) -> bool:
        """Check whether the host should process data in small chunks.

        ``auto`` classifies hosts with few CPU cores as constrained.
        """
        if self.processing_capability == "auto":
            return (os.cpu_count() or 1) <= self.constrained_cpu_threshold
        return self.processing_capability == "constrained"

    @property
    def chunk_size(self) -> int:
        """Number of records processed between event loop yields."""
        return self.constrained_chunk_size if self.is_constrained else self.capable_chunk_size


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
