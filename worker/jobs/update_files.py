"""Update-files job: push user-edited files into a live sandbox."""

import time

import structlog

from shared.clients.sandbox import (
    SandboxClient,
    extract_sandbox_id,
    is_valid_sandbox_id,
    is_valid_sandbox_url,
)
from shared.contracts.queues.sandbox import SandboxUpdateFilesMessage, SandboxUpdateResult
from shared.exceptions import InvalidSandboxUrlError

logger = structlog.get_logger()


class UpdateFilesJob:
    """Handles ``sandbox:update-files`` events.

    Failures are reported in the result rather than raised, so the stream
    entry is acknowledged either way.
    """

    def __init__(self, sandbox_client: SandboxClient):
        self.sandbox_client = sandbox_client

    async def run(self, message: SandboxUpdateFilesMessage) -> SandboxUpdateResult:
        structlog.contextvars.bind_contextvars(request_id=message.request_id)
        start = time.time()
        sandbox_id: str | None = None
        written = 0

        try:
            sandbox_id = self._sandbox_id(message.sandbox_url)
            sandbox = await self.sandbox_client.connect(sandbox_id)

            for path, content in message.files.items():
                await sandbox.files.write(path, content)
                written += 1

            logger.info("sandbox_files_updated", sandbox_id=sandbox_id, files_written=written)
            return SandboxUpdateResult(
                request_id=message.request_id,
                status="success",
                sandbox_id=sandbox_id,
                files_written=written,
                duration_ms=int((time.time() - start) * 1000),
            )
        except Exception as e:
            logger.error(
                "sandbox_files_update_failed",
                sandbox_url=message.sandbox_url,
                sandbox_id=sandbox_id,
                files_written=written,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return SandboxUpdateResult(
                request_id=message.request_id,
                status="failed",
                error=str(e),
                sandbox_id=sandbox_id,
                files_written=written,
                duration_ms=int((time.time() - start) * 1000),
            )
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

    @staticmethod
    def _sandbox_id(sandbox_url: str) -> str:
        """Sandbox id of a preview URL on the provider's domain.

        Raises:
            InvalidSandboxUrlError: Not an https provider URL, or a malformed id.
        """
        if not is_valid_sandbox_url(sandbox_url):
            raise InvalidSandboxUrlError(f"Invalid sandbox URL format: {sandbox_url}")
        sandbox_id = extract_sandbox_id(sandbox_url)
        if not is_valid_sandbox_id(sandbox_id):
            raise InvalidSandboxUrlError(f"Invalid sandbox id in URL: {sandbox_url}")
        return sandbox_id
