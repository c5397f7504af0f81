"""Request and response schemas."""

from .message import FragmentFilesUpdate, FragmentRead, MessageCreate, MessageRead
from .project import MAX_VALUE_LENGTH, ProjectCreate, ProjectDeleted, ProjectRead

__all__ = [
    "MAX_VALUE_LENGTH",
    "FragmentFilesUpdate",
    "FragmentRead",
    "MessageCreate",
    "MessageRead",
    "ProjectCreate",
    "ProjectDeleted",
    "ProjectRead",
]
