"""Settings shared by the API and the worker.

Both services read the same environment: ``DATABASE_URL`` and ``REDIS_URL``
are required, the E2B key and template are optional (sandbox work fails at
call time without a key, it never blocks startup).

Usage in service:
    from shared.config import ServiceSettings

    class Settings(ServiceSettings):
        history_limit: int = 5
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings as PydanticBaseSettings, SettingsConfigDict

LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})

DEFAULT_SANDBOX_TEMPLATE = "vibe-nextjs-nandu"
DEFAULT_SANDBOX_TEMPLATE_ID = "d622vkz8p86647vfbfsu"


class BaseSettings(PydanticBaseSettings):
    """Logging settings every process understands."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    service_name: str = Field(default="unknown", description="Service name for structured logs")
    log_format: Literal["json", "console"] = Field(default="console")
    log_level: str = Field(default="INFO", description="DEBUG, INFO, WARNING or ERROR")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize to upper case and reject unknown levels."""
        upper_v = v.upper()
        if upper_v not in LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {sorted(LOG_LEVELS)}")
        return upper_v


def database_url_field():
    """Required async SQLAlchemy URL."""
    return Field(
        ...,
        description="Async database URL",
        examples=["postgresql+asyncpg://vibe:vibe@db:5432/vibe", "sqlite+aiosqlite:///vibe.db"],
    )


def redis_url_field():
    """Required Redis URL for the job streams."""
    return Field(..., description="Redis connection URL", examples=["redis://redis:6379"])


class ServiceSettings(BaseSettings):
    """Storage, queue and sandbox settings common to the API and the worker."""

    database_url: str = database_url_field()
    redis_url: str = redis_url_field()

    e2b_api_key: str = Field(
        default="",
        description="E2B API key; sandbox calls fail without it",
    )
    sandbox_template: str = Field(
        default=DEFAULT_SANDBOX_TEMPLATE,
        description="Sandbox template name tried first",
    )
    sandbox_template_id: str = Field(
        default=DEFAULT_SANDBOX_TEMPLATE_ID,
        description="Sandbox template ID used when the template name is rejected",
    )
