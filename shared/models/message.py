"""Chat message model."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id

if TYPE_CHECKING:
    from .fragment import Fragment
    from .project import Project


class MessageRole(str, Enum):
    """Who wrote the message."""

    USER = "USER"
    ASSISTANT = "ASSISTANT"


class MessageType(str, Enum):
    """Outcome carried by the message."""

    RESULT = "RESULT"
    ERROR = "ERROR"


class Message(Base):
    """Message model.

    Rows are written once (by the API for user input, by the worker for agent
    output) and only disappear through the owning project's cascade delete.
    """

    __tablename__ = "messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id", ondelete="CASCADE"), index=True
    )
    content: Mapped[str] = mapped_column(Text)
    role: Mapped[str] = mapped_column(String(20))
    type: Mapped[str] = mapped_column(String(20))

    project: Mapped[Project] = relationship(back_populates="messages")
    fragment: Mapped[Fragment | None] = relationship(
        back_populates="message",
        cascade="all, delete-orphan",
        uselist=False,
    )
