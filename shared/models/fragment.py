"""Fragment model - the artifact of one successful agent run."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, new_id

if TYPE_CHECKING:
    from .message import Message


class Fragment(Base):
    """Sandbox URL plus the generated file tree, 1:1 with a RESULT message."""

    __tablename__ = "fragments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    message_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("messages.id", ondelete="CASCADE"), unique=True
    )
    sandbox_url: Mapped[str] = mapped_column(String(512))
    title: Mapped[str] = mapped_column(String(255))
    # path -> file content
    files: Mapped[dict] = mapped_column(JSON, default=dict)

    message: Mapped[Message] = relationship(back_populates="fragment")
