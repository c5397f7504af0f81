"""Database models package."""

from .base import Base
from .fragment import Fragment
from .message import Message, MessageRole, MessageType
from .project import Project

__all__ = [
    "Base",
    "Fragment",
    "Message",
    "MessageRole",
    "MessageType",
    "Project",
]
