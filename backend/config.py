"""Backend-specific configuration."""

from functools import lru_cache

from takeout_wrapped.core.config import Settings


class BackendSettings(Settings):
    """Extended settings for the backend API."""

    # Upload limits
    max_upload_bytes: int = 100 * 1024 * 1024

    # Song lookup endpoint (caps quota spent per request)
    max_lookup_ids: int = 8000

    # Origins allowed to call quota-spending endpoints
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Pipeline orchestration
    max_step_attempts: int = 3
    step_retry_delay_seconds: float = 1.0
    artifact_retention_days: int = 7
    # Cloud Tasks waits this long for /internal/process before retrying (max 30 min)
    task_dispatch_deadline_seconds: int = 1800


@lru_cache
def get_backend_settings() -> BackendSettings:
    """Get cached backend settings instance."""
    return BackendSettings()
