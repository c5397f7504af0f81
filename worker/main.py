"""Job worker - consumes code-agent:run and sandbox:update-files.

Run standalone: python -m worker.main
"""

from __future__ import annotations

import asyncio
import os
import signal

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from shared.clients.sandbox import SandboxClient
from shared.database import create_engine, create_session_maker
from shared.logging_config import key_status, setup_logging
from shared.queues import ensure_consumer_groups
from shared.redis_client import RedisStreamClient

from .config import Settings, get_settings
from .consumers import JobConsumers
from .jobs import CodeAgentJob, UpdateFilesJob
from .repository import MessageRepository
from .steps import RetryPolicy, StepRunner

logger = structlog.get_logger(__name__)

# Worker identification
CONSUMER_NAME = f"vibe-worker-{os.getpid()}"


def handle_shutdown(signum: int, consumers: JobConsumers) -> None:
    """Handle shutdown signals gracefully."""
    logger.info("shutdown_signal_received", signal=signum)
    consumers.stop()


def build_consumers(
    settings: Settings,
    redis_client: Redis,
    session_maker: async_sessionmaker[AsyncSession],
    consumer_name: str = CONSUMER_NAME,
) -> JobConsumers:
    """Wire jobs and stream consumers from settings.

    Chat models are built on the first code-agent run, so a missing LLM key
    fails that run instead of worker startup.
    """
    sandbox_client = SandboxClient(
        api_key=settings.e2b_api_key,
        template=settings.sandbox_template,
        template_id=settings.sandbox_template_id,
        timeout_seconds=settings.sandbox_timeout_seconds,
        connect_timeout_seconds=settings.sandbox_connect_timeout_seconds,
    )
    steps = StepRunner(
        RetryPolicy(
            max_attempts=settings.step_max_attempts,
            backoff_seconds=settings.step_backoff_seconds,
        )
    )
    return JobConsumers(
        redis_client,
        code_agent_job=CodeAgentJob.from_settings(
            settings,
            sandbox_client=sandbox_client,
            repository=MessageRepository(session_maker),
            steps=steps,
        ),
        update_files_job=UpdateFilesJob(sandbox_client),
        consumer_name=consumer_name,
        claim_idle_ms=settings.stream_claim_idle_ms,
        claim_interval_seconds=settings.stream_claim_interval_seconds,
        max_deliveries=settings.stream_max_deliveries,
    )


async def run_worker() -> None:
    """Main worker loop."""
    settings = get_settings()
    setup_logging(
        service_name="worker", log_format=settings.log_format, log_level=settings.log_level
    )

    logger.info(
        "provider_keys_checked",
        e2b_api_key=key_status(settings.e2b_api_key or os.getenv("E2B_API_KEY")),
        openai_api_key=key_status(settings.openai_api_key or os.getenv("OPENAI_API_KEY")),
        llm_provider=settings.llm_provider,
    )

    engine = create_engine(settings.database_url)
    redis = RedisStreamClient(settings.redis_url)
    await redis.connect()
    await ensure_consumer_groups(redis.redis)

    consumers = build_consumers(settings, redis.redis, create_session_maker(engine))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_shutdown, sig, consumers)

    logger.info("worker_started", consumer=CONSUMER_NAME)

    try:
        await consumers.run()
    finally:
        await redis.close()
        await engine.dispose()
        logger.info("worker_shutdown")


def main() -> None:
    """Entry point for running as module."""
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
