"""Shared clients for external services."""

from .sandbox import (
    SandboxClient,
    SandboxHealthCheck,
    extract_sandbox_id,
    get_sandbox_url,
    is_valid_sandbox_id,
    is_valid_sandbox_url,
    wait_for_dev_server,
)

__all__ = [
    "SandboxClient",
    "SandboxHealthCheck",
    "extract_sandbox_id",
    "get_sandbox_url",
    "is_valid_sandbox_id",
    "is_valid_sandbox_url",
    "wait_for_dev_server",
]
