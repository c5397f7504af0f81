"""API service configuration.

Requires: DATABASE_URL, REDIS_URL
Optional: E2B_API_KEY (only for the sandbox health endpoint)
"""

from functools import lru_cache

from shared.config import ServiceSettings


class Settings(ServiceSettings):
    """API service settings."""


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Validates required env vars on first call.
    Raises ValidationError if DATABASE_URL or REDIS_URL are missing.
    """
    return Settings()
