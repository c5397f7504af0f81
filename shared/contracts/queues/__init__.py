"""Job payloads exchanged between the API and the worker."""

from .agent import CodeAgentResult, CodeAgentRunMessage
from .sandbox import SandboxUpdateFilesMessage, SandboxUpdateResult

__all__ = [
    "CodeAgentResult",
    "CodeAgentRunMessage",
    "SandboxUpdateFilesMessage",
    "SandboxUpdateResult",
]
