"""Redis Stream consumers for the job worker.

Consumes messages from:
- code-agent:run -> CodeAgentJob
- sandbox:update-files -> UpdateFilesJob
"""

import asyncio
from collections.abc import Awaitable, Callable
import os
import time
from typing import TypeVar

from pydantic import BaseModel, ValidationError
import redis.asyncio as redis
import structlog

from shared.contracts.queues.agent import CodeAgentRunMessage
from shared.contracts.queues.sandbox import SandboxUpdateFilesMessage
from shared.exceptions import InvalidPayloadError
from shared.queues import CODE_AGENT_QUEUE, SANDBOX_UPDATE_QUEUE, WORKER_GROUP

from .jobs import CodeAgentJob, UpdateFilesJob

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(model: type[ModelT], fields: dict) -> ModelT:
    """Validate the JSON ``data`` field of a stream entry.

    Raises:
        InvalidPayloadError: The entry does not hold a valid ``model``.
    """
    try:
        return model.model_validate_json(fields.get("data", "{}"))
    except ValidationError as e:
        raise InvalidPayloadError(str(e)) from e


class StreamConsumer:
    """Generic Redis Stream consumer with consumer group support.

    Entries are acknowledged once the handler returns. A handler exception
    leaves the entry pending; pending entries idle for ``claim_idle_ms`` are
    claimed again on startup and every ``claim_interval_seconds``, by this
    consumer or any other in the group. Invalid payloads and entries delivered
    more than ``max_deliveries`` times are acknowledged and dropped.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        stream_name: str,
        handler: Callable[[dict], Awaitable[None]],
        consumer_name: str | None = None,
        group_name: str = WORKER_GROUP,
        block_ms: int | None = 5000,
        claim_idle_ms: int = 60_000,
        claim_interval_seconds: float = 30.0,
        max_deliveries: int = 5,
        claim_batch: int = 10,
    ):
        self.redis = redis_client
        self.stream = stream_name
        self.handler = handler
        self.consumer_name = consumer_name or f"worker-{os.getpid()}"
        self.group = group_name
        self.block_ms = block_ms
        self.claim_idle_ms = claim_idle_ms
        self.claim_interval_seconds = claim_interval_seconds
        self.max_deliveries = max_deliveries
        self.claim_batch = claim_batch
        self._last_claim: float | None = None
        self.running = False

    async def ensure_group(self) -> None:
        """Ensure consumer group exists."""
        try:
            await self.redis.xgroup_create(self.stream, self.group, id="0", mkstream=True)
            logger.info("consumer_group_created", stream=self.stream, group=self.group)
        except redis.ResponseError as e:
            if "BUSYGROUP" not in str(e):
                raise

    async def process_message(self, msg_id: str, fields: dict) -> bool:
        """Handle one stream entry.

        Returns:
            True if the entry was acknowledged.
        """
        decoded = {
            (k.decode() if isinstance(k, bytes) else k): (
                v.decode() if isinstance(v, bytes) else v
            )
            for k, v in fields.items()
        }

        try:
            await self.handler(decoded)
        except InvalidPayloadError as e:
            logger.error(
                "message_invalid_dropped", stream=self.stream, msg_id=msg_id, error=str(e)
            )
        except Exception as e:
            logger.error(
                "message_processing_failed",
                stream=self.stream,
                msg_id=msg_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            # Not acked: stays pending for redelivery
            return False

        await self.redis.xack(self.stream, self.group, msg_id)
        logger.debug("message_processed", stream=self.stream, msg_id=msg_id)
        return True

    async def read_once(self) -> int:
        """Read and process one batch. Returns the number of entries seen."""
        messages = await self.redis.xreadgroup(
            groupname=self.group,
            consumername=self.consumer_name,
            streams={self.stream: ">"},
            count=1,
            block=self.block_ms,
        )
        if not messages:
            return 0

        seen = 0
        for _stream_name, stream_messages in messages:
            for msg_id, fields in stream_messages:
                await self.process_message(msg_id, fields)
                seen += 1
        return seen

    async def claim_pending(self) -> int:
        """Claim idle pending entries and process them again.

        Returns:
            The number of claimed entries handed to the handler.
        """
        self._last_claim = time.monotonic()
        start_id = "0-0"
        seen = 0
        while True:
            response = await self.redis.xautoclaim(
                self.stream,
                self.group,
                self.consumer_name,
                min_idle_time=self.claim_idle_ms,
                start_id=start_id,
                count=self.claim_batch,
            )
            next_id, claimed = response[0], response[1]
            for msg_id, fields in claimed:
                # Deleted from the stream while pending
                if msg_id is None or fields is None:
                    continue
                if await self._deliveries_exhausted(msg_id):
                    continue
                logger.info("message_reclaimed", stream=self.stream, msg_id=msg_id)
                await self.process_message(msg_id, fields)
                seen += 1
            if not claimed or next_id in ("0-0", b"0-0"):
                return seen
            start_id = next_id

    async def _deliveries_exhausted(self, msg_id: str) -> bool:
        """Ack and drop an entry delivered more than ``max_deliveries`` times."""
        pending = await self.redis.xpending_range(
            self.stream, self.group, min=msg_id, max=msg_id, count=1
        )
        if not pending or pending[0]["times_delivered"] <= self.max_deliveries:
            return False
        logger.error(
            "message_dead_lettered",
            stream=self.stream,
            msg_id=msg_id,
            times_delivered=pending[0]["times_delivered"],
        )
        await self.redis.xack(self.stream, self.group, msg_id)
        return True

    def _claim_due(self) -> bool:
        if self._last_claim is None:
            return True
        return time.monotonic() - self._last_claim >= self.claim_interval_seconds

    async def run(self) -> None:
        """Run consumer loop."""
        await self.ensure_group()
        self.running = True

        logger.info(
            "stream_consumer_started",
            stream=self.stream,
            group=self.group,
            consumer=self.consumer_name,
        )

        while self.running:
            try:
                if self._claim_due():
                    await self.claim_pending()
                await self.read_once()
            except asyncio.CancelledError:
                logger.info("stream_consumer_cancelled", stream=self.stream)
                break
            except redis.ResponseError as e:
                if "NOGROUP" in str(e):
                    # Stream was reset (e.g., by flushdb) - recreate group
                    logger.warning(
                        "consumer_group_lost_recreating", stream=self.stream, group=self.group
                    )
                    await self.ensure_group()
                else:
                    logger.error(
                        "stream_consumer_redis_error",
                        stream=self.stream,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    await asyncio.sleep(1)
            except Exception as e:
                logger.error(
                    "stream_consumer_error",
                    stream=self.stream,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )
                await asyncio.sleep(1)

        logger.info("stream_consumer_stopped", stream=self.stream)

    def stop(self) -> None:
        """Stop the consumer loop."""
        self.running = False


class JobConsumers:
    """Wires both job streams to their handlers."""

    def __init__(
        self,
        redis_client: redis.Redis,
        code_agent_job: CodeAgentJob,
        update_files_job: UpdateFilesJob,
        consumer_name: str | None = None,
        **consumer_options,
    ):
        self.redis = redis_client
        self.code_agent_job = code_agent_job
        self.update_files_job = update_files_job
        self.consumers = [
            StreamConsumer(
                redis_client,
                CODE_AGENT_QUEUE,
                self.handle_code_agent_run,
                consumer_name,
                **consumer_options,
            ),
            StreamConsumer(
                redis_client,
                SANDBOX_UPDATE_QUEUE,
                self.handle_sandbox_update,
                consumer_name,
                **consumer_options,
            ),
        ]

    async def run(self) -> None:
        """Run all consumers concurrently until stopped."""
        await asyncio.gather(*[c.run() for c in self.consumers])

    def stop(self) -> None:
        for consumer in self.consumers:
            consumer.stop()

    async def handle_code_agent_run(self, fields: dict) -> None:
        message = parse_payload(CodeAgentRunMessage, fields)
        logger.info(
            "code_agent_run_received",
            request_id=message.request_id,
            project_id=message.project_id,
        )
        result = await self.code_agent_job.run(message)
        logger.info(
            "code_agent_run_finished",
            request_id=result.request_id,
            status=result.status,
            duration_ms=result.duration_ms,
        )

    async def handle_sandbox_update(self, fields: dict) -> None:
        message = parse_payload(SandboxUpdateFilesMessage, fields)
        logger.info(
            "sandbox_update_received",
            request_id=message.request_id,
            file_count=len(message.files),
        )
        result = await self.update_files_job.run(message)
        logger.info(
            "sandbox_update_finished",
            request_id=result.request_id,
            status=result.status,
            error=result.error,
        )
