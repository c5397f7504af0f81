"""Error taxonomy for sandbox and job failures."""


class VibeError(Exception):
    """Base class for all service errors."""


class NonRetriableError(VibeError):
    """Retrying the failed step cannot succeed."""


class SandboxError(VibeError):
    """Base class for sandbox provider failures."""


class SandboxAuthError(SandboxError, NonRetriableError):
    """The sandbox API key is missing or rejected."""


class SandboxTemplateNotFoundError(SandboxError):
    """Neither the template name nor the template id could be resolved."""


class SandboxNotFoundError(SandboxError):
    """The sandbox no longer exists or has expired."""


class SandboxConnectionError(SandboxError):
    """Connecting to an existing sandbox failed for another reason."""


class SandboxProviderError(SandboxError):
    """Generic remote failure while talking to the sandbox provider."""


class InvalidSandboxUrlError(NonRetriableError, ValueError):
    """A sandbox URL could not be parsed into a sandbox id."""


class AgentOutputError(VibeError):
    """The agent produced neither a task summary nor any files."""


class LLMConfigurationError(NonRetriableError):
    """No usable API key or provider is configured for the chat models."""


class InvalidPayloadError(NonRetriableError):
    """A stream entry does not hold a valid job payload."""
