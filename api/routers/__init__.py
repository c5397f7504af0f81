"""Routers package."""

from . import health, messages, projects

__all__ = [
    "health",
    "messages",
    "projects",
]
