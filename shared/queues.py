"""Redis Streams job queues for async task processing.

Stream names mirror the job events the API publishes and the worker consumes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import redis.asyncio as redis_asyncio
import structlog

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)

# code-agent/run: start an agent run for a project
CODE_AGENT_QUEUE = "code-agent:run"
# sandbox/update-files: push edited files into a live sandbox
SANDBOX_UPDATE_QUEUE = "sandbox:update-files"

ALL_QUEUES = (CODE_AGENT_QUEUE, SANDBOX_UPDATE_QUEUE)

# Consumer group name (shared across all workers)
WORKER_GROUP = "vibe-workers"


async def ensure_consumer_groups(redis: Redis) -> None:
    """Create consumer groups if they don't exist.

    Should be called on worker startup.

    Args:
        redis: Connected Redis client
    """
    for queue in ALL_QUEUES:
        try:
            await redis.xgroup_create(queue, WORKER_GROUP, id="0", mkstream=True)
            logger.info("consumer_group_created", queue=queue, group=WORKER_GROUP)
        except redis_asyncio.ResponseError as e:
            if "BUSYGROUP" in str(e):
                logger.debug("consumer_group_exists", queue=queue, group=WORKER_GROUP)
            else:
                logger.error(
                    "consumer_group_creation_failed",
                    queue=queue,
                    error=str(e),
                )
                raise
