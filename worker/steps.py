"""Named, retried units of work inside a job.

Each step logs start/complete/failed with its name bound to the structlog
context, and is retried under a RetryPolicy. Nothing is memoized: a
re-delivered job runs every step again.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
import time
from typing import TypeVar

import structlog

from shared.exceptions import NonRetriableError

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for steps."""

    max_attempts: int = 1
    backoff_seconds: float = 0.0

    def delay_for(self, attempt: int) -> float:
        """Delay after the given zero-based failed attempt."""
        return self.backoff_seconds * 2**attempt


class StepRunner:
    """Runs job steps with structured logging and retries."""

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

    async def run(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` as step ``name``.

        Raises:
            NonRetriableError: Immediately, without further attempts.
            Exception: The last error once all attempts are used up.
        """
        structlog.contextvars.bind_contextvars(step=name)
        try:
            return await self._run_with_retries(name, fn)
        finally:
            structlog.contextvars.unbind_contextvars("step")

    async def _run_with_retries(self, name: str, fn: Callable[[], Awaitable[T]]) -> T:
        max_attempts = max(1, self.retry_policy.max_attempts)

        for attempt in range(max_attempts):
            logger.info("step_start", attempt=attempt + 1)
            start = time.time()
            try:
                result = await fn()
            except NonRetriableError as e:
                logger.error(
                    "step_failed",
                    duration_ms=round((time.time() - start) * 1000, 2),
                    error=str(e),
                    error_type=type(e).__name__,
                    retriable=False,
                    exc_info=True,
                )
                raise
            except Exception as e:
                duration = (time.time() - start) * 1000
                if attempt == max_attempts - 1:
                    logger.error(
                        "step_failed",
                        duration_ms=round(duration, 2),
                        error=str(e),
                        error_type=type(e).__name__,
                        attempts=max_attempts,
                        exc_info=True,
                    )
                    raise

                delay = self.retry_policy.delay_for(attempt)
                logger.warning(
                    "step_retrying",
                    attempt=attempt + 1,
                    max_attempts=max_attempts,
                    delay_seconds=delay,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                await self._sleep(delay)
            else:
                logger.info(
                    "step_complete",
                    duration_ms=round((time.time() - start) * 1000, 2),
                    attempt=attempt + 1,
                )
                return result

        raise RuntimeError(f"Step {name} exhausted its attempts")  # pragma: no cover
