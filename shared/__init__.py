"""Shared utilities for the vibe API and worker services."""

from .redis_client import RedisStreamClient

# Models and contracts are imported from their submodules
# Example: from shared.models import Project, Message

__all__ = ["RedisStreamClient"]
