"""Project model."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id

if TYPE_CHECKING:
    from .message import Message


class Project(Base):
    """Project model - one chat thread that produces generated apps."""

    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(255))

    # Subject id issued by the external auth provider
    user_id: Mapped[str] = mapped_column(String(255), index=True)

    messages: Mapped[list[Message]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Message.created_at",
    )
