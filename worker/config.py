"""Worker service configuration.

Requires: DATABASE_URL, REDIS_URL
Optional: E2B_API_KEY, OPENAI_API_KEY / OPEN_ROUTER_KEY (jobs fail without them)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field

from shared.config import ServiceSettings


class Settings(ServiceSettings):
    """Worker service settings."""

    # Provider keys are checked and logged at startup, never required
    openai_api_key: str = Field(default="", description="OpenAI API key")

    # LLM
    llm_provider: Literal["openai", "openrouter"] = "openai"
    agent_model: str = Field(default="gpt-4o-mini", description="Model for all agent calls")
    agent_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    agent_max_iterations: int = Field(default=15, ge=1)
    history_limit: int = Field(default=5, ge=0, description="Previous messages given to the agent")

    # Sandbox
    sandbox_timeout_seconds: int = Field(default=600, ge=1)
    sandbox_connect_timeout_seconds: int = Field(default=1800, ge=1)
    sandbox_port: int = 3000
    dev_server_settle_seconds: float = Field(default=3.0, ge=0.0)
    dev_server_poll_attempts: int = Field(default=6, ge=1)
    dev_server_poll_backoff_seconds: float = Field(default=1.0, ge=0.0)

    # Step retries
    step_max_attempts: int = Field(default=3, ge=1)
    step_backoff_seconds: float = Field(default=1.0, ge=0.0)

    # Pending stream entries idle this long are claimed by another consumer
    stream_claim_idle_ms: int = Field(default=60_000, ge=0)
    stream_claim_interval_seconds: float = Field(default=30.0, gt=0.0)
    stream_max_deliveries: int = Field(default=5, ge=1)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Validates required env vars on first call.
    Raises ValidationError if DATABASE_URL or REDIS_URL are missing.
    """
    return Settings()
