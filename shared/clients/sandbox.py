"""E2B sandbox client.

Used by the worker to create sandboxes and reconnect to them, and by the API
for its sandbox health endpoint.

Sandbox preview URLs look like ``https://<sandbox_id>-<port>.e2b.dev``.
"""

import asyncio
import re
from typing import Any

from e2b import AuthenticationException, NotFoundException
from e2b_code_interpreter import AsyncSandbox
import httpx
from pydantic import BaseModel

from shared.exceptions import (
    InvalidSandboxUrlError,
    SandboxAuthError,
    SandboxConnectionError,
    SandboxError,
    SandboxNotFoundError,
    SandboxProviderError,
    SandboxTemplateNotFoundError,
)
from shared.logging_config import get_logger

logger = get_logger(__name__)

SANDBOX_ID_PATTERN = re.compile(r"^[a-z0-9]{20,30}$", re.IGNORECASE)
SANDBOX_HOST_SUFFIX = ".e2b.dev"

HEALTH_CHECK_TIMEOUT_SECONDS = 30


class SandboxHealthDetails(BaseModel):
    can_create_sandbox: bool
    template_exists: bool
    api_key_valid: bool


class SandboxHealthCheck(BaseModel):
    """Result of probing the sandbox provider."""

    is_healthy: bool
    error: str | None = None
    details: SandboxHealthDetails


def extract_sandbox_id(sandbox_url: str) -> str:
    """Extract the sandbox id from a preview URL.

    ``https://itwpgu0xn55atpf7xisfr-3000.e2b.dev`` -> ``itwpgu0xn55atpf7xisfr``

    Raises:
        InvalidSandboxUrlError: If the protocol, subdomain or id is missing.
    """
    parts = sandbox_url.split("://", 1)
    without_protocol = parts[1] if len(parts) == 2 else ""  # noqa: PLR2004
    subdomain = without_protocol.split(".")[0]
    sandbox_id = subdomain.split("-")[0]

    if not without_protocol:
        reason = "missing protocol"
    elif not subdomain:
        reason = "missing subdomain"
    elif not sandbox_id:
        reason = "missing sandbox ID"
    else:
        logger.debug("sandbox_id_extracted", sandbox_id=sandbox_id, sandbox_url=sandbox_url)
        return sandbox_id

    logger.error("sandbox_id_extraction_failed", sandbox_url=sandbox_url, reason=reason)
    raise InvalidSandboxUrlError(f"Invalid sandbox URL format: {sandbox_url}")


def is_valid_sandbox_id(sandbox_id: str) -> bool:
    """Sandbox ids are 20-30 alphanumeric characters."""
    return bool(SANDBOX_ID_PATTERN.match(sandbox_id))


def is_valid_sandbox_url(url: str) -> bool:
    """Accept only https URLs on the sandbox provider's domain."""
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        return False
    return parsed.scheme == "https" and parsed.host.endswith(SANDBOX_HOST_SUFFIX)


def get_sandbox_url(sandbox: Any, port: int = 3000) -> str:
    """Public preview URL for a port inside the sandbox."""
    return f"https://{sandbox.get_host(port)}"


def _is_auth_failure(error: Exception) -> bool:
    message = str(error).lower()
    return isinstance(error, AuthenticationException) or (
        "unauthorized" in message or "401" in message
    )


def _is_not_found(error: Exception) -> bool:
    message = str(error).lower()
    return isinstance(error, NotFoundException) or "not found" in message or "404" in message


def classify_create_error(error: Exception, template: str) -> SandboxError:
    """Map a sandbox creation failure onto the error taxonomy."""
    if isinstance(error, SandboxError):
        return error
    if _is_auth_failure(error):
        return SandboxAuthError(
            "E2B API key is invalid or missing. Please check your environment variables."
        )
    if _is_not_found(error) or "template" in str(error).lower():
        return SandboxTemplateNotFoundError(
            f"E2B template '{template}' not found. Please ensure the template exists."
        )
    return SandboxProviderError(f"Failed to create E2B sandbox: {error}")


def classify_connect_error(error: Exception, sandbox_id: str) -> SandboxError:
    """Map a reconnect failure onto the error taxonomy."""
    if _is_auth_failure(error):
        return SandboxAuthError(
            "E2B API key is invalid or missing. Please check your environment variables."
        )
    if _is_not_found(error):
        return SandboxNotFoundError(
            f"Sandbox {sandbox_id} no longer exists or has expired. Please create a new project."
        )
    return SandboxConnectionError(f"Sandbox connection failed: {sandbox_id}. {error}")


class SandboxClient:
    """Thin wrapper around the E2B SDK with template fallback and error mapping."""

    def __init__(
        self,
        api_key: str | None,
        template: str,
        template_id: str,
        timeout_seconds: int = 600,
        connect_timeout_seconds: int = 1800,
        sandbox_cls: Any = AsyncSandbox,
    ):
        """Initialize sandbox client.

        Args:
            api_key: E2B API key. Empty means the SDK reads E2B_API_KEY itself.
            template: Template name tried first.
            template_id: Template id tried when the name is rejected.
            timeout_seconds: Idle timeout for new sandboxes.
            connect_timeout_seconds: Idle timeout set when reconnecting.
            sandbox_cls: SDK sandbox class (replaced in tests).
        """
        self.api_key = api_key or None
        self.template = template
        self.template_id = template_id
        self.timeout_seconds = timeout_seconds
        self.connect_timeout_seconds = connect_timeout_seconds
        self._sandbox_cls = sandbox_cls

    async def _create_from_templates(self, **kwargs: Any) -> Any:
        try:
            sandbox = await self._sandbox_cls.create(
                template=self.template, api_key=self.api_key, **kwargs
            )
            logger.info(
                "sandbox_created", sandbox_id=sandbox.sandbox_id, template=self.template
            )
        except Exception as name_error:
            logger.warning(
                "sandbox_template_name_failed",
                template=self.template,
                fallback=self.template_id,
                error=str(name_error),
            )
            sandbox = await self._sandbox_cls.create(
                template=self.template_id, api_key=self.api_key, **kwargs
            )
            logger.info(
                "sandbox_created", sandbox_id=sandbox.sandbox_id, template=self.template_id
            )
        return sandbox

    async def create(self) -> Any:
        """Create a sandbox from the template name, falling back to the template id.

        Raises:
            SandboxAuthError: Credentials were rejected.
            SandboxTemplateNotFoundError: Neither template resolved.
            SandboxProviderError: Any other provider failure.
        """
        try:
            sandbox = await self._create_from_templates()
            await sandbox.set_timeout(self.timeout_seconds)
            return sandbox
        except Exception as e:
            logger.error(
                "sandbox_creation_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise classify_create_error(e, self.template) from e

    async def connect(self, sandbox_id: str) -> Any:
        """Reconnect to a running sandbox and extend its idle timeout."""
        logger.debug("sandbox_connecting", sandbox_id=sandbox_id)
        try:
            sandbox = await self._sandbox_cls.connect(sandbox_id, api_key=self.api_key)
            await sandbox.set_timeout(self.connect_timeout_seconds)
        except Exception as e:
            logger.error("sandbox_connect_failed", sandbox_id=sandbox_id, error=str(e))
            raise classify_connect_error(e, sandbox_id) from e

        logger.debug("sandbox_connected", sandbox_id=sandbox_id)
        return sandbox

    async def check_health(self) -> SandboxHealthCheck:
        """Create and immediately kill a throwaway sandbox."""
        if not self.api_key:
            return SandboxHealthCheck(
                is_healthy=False,
                error="E2B_API_KEY environment variable is not set",
                details=SandboxHealthDetails(
                    can_create_sandbox=False, template_exists=False, api_key_valid=False
                ),
            )

        try:
            sandbox = await self._create_from_templates(timeout=HEALTH_CHECK_TIMEOUT_SECONDS)
        except Exception as e:
            api_key_valid = not _is_auth_failure(e)
            return SandboxHealthCheck(
                is_healthy=False,
                error=f"Failed to create sandbox with both template name and ID: {e}",
                details=SandboxHealthDetails(
                    can_create_sandbox=False,
                    template_exists=False,
                    api_key_valid=api_key_valid,
                ),
            )

        try:
            await sandbox.kill()
        except Exception as e:
            logger.warning("sandbox_health_cleanup_failed", error=str(e))

        return SandboxHealthCheck(
            is_healthy=True,
            details=SandboxHealthDetails(
                can_create_sandbox=True, template_exists=True, api_key_valid=True
            ),
        )


async def wait_for_dev_server(
    url: str,
    attempts: int = 6,
    backoff_seconds: float = 1.0,
    client: httpx.AsyncClient | None = None,
) -> bool:
    """Poll a preview URL until the dev server answers.

    Any response below 500 counts as ready; the sandbox proxy answers 502
    while nothing listens on the port.

    Returns:
        True once the server answered, False after all attempts failed.
    """
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=10.0, follow_redirects=True)

    try:
        for attempt in range(attempts):
            try:
                resp = await http.get(url)
                if resp.status_code < 500:  # noqa: PLR2004
                    logger.info("dev_server_ready", url=url, attempt=attempt + 1)
                    return True
                logger.debug(
                    "dev_server_not_ready", url=url, status_code=resp.status_code, attempt=attempt + 1
                )
            except httpx.HTTPError as e:
                logger.debug("dev_server_unreachable", url=url, error=str(e), attempt=attempt + 1)

            if attempt < attempts - 1:
                await asyncio.sleep(backoff_seconds * 2**attempt)
    finally:
        if owns_client:
            await http.aclose()

    logger.warning("dev_server_not_ready_after_retries", url=url, attempts=attempts)
    return False
