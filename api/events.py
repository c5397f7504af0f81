"""Job event publishing.

The API only enqueues work; the worker service consumes these streams.
"""

import structlog

from shared.contracts.queues import CodeAgentRunMessage, SandboxUpdateFilesMessage
from shared.queues import CODE_AGENT_QUEUE, SANDBOX_UPDATE_QUEUE
from shared.redis_client import RedisStreamClient

logger = structlog.get_logger()


class JobPublisher:
    """Publishes job events to Redis Streams."""

    def __init__(self, client: RedisStreamClient):
        self.client = client

    async def send_code_agent_run(self, value: str, project_id: str) -> str:
        """Enqueue an agent run for a project."""
        message = CodeAgentRunMessage(value=value, project_id=project_id)
        entry_id = await self.client.publish_message(CODE_AGENT_QUEUE, message)
        logger.info(
            "code_agent_run_enqueued",
            project_id=project_id,
            request_id=message.request_id,
            entry_id=entry_id,
        )
        return message.request_id

    async def send_sandbox_update(self, sandbox_url: str, files: dict[str, str]) -> str:
        """Enqueue a push of edited files into a live sandbox."""
        message = SandboxUpdateFilesMessage(sandbox_url=sandbox_url, files=files)
        entry_id = await self.client.publish_message(SANDBOX_UPDATE_QUEUE, message)
        logger.info(
            "sandbox_update_enqueued",
            sandbox_url=sandbox_url,
            file_count=len(files),
            request_id=message.request_id,
            entry_id=entry_id,
        )
        return message.request_id
