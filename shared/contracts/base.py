from datetime import UTC, datetime
from typing import Literal
import uuid

from pydantic import BaseModel, Field


class QueueMeta(BaseModel):
    """Metadata for all queue messages."""

    version: Literal["1"] = "1"
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class BaseMessage(QueueMeta):
    """Base class for queue messages.

    ``request_id`` identifies one delivery of a job; it is not an idempotency
    key, and re-publishing the same payload produces a new one.
    """

    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))


class BaseResult(BaseModel):
    """Base result for async operations."""

    request_id: str
    status: Literal["success", "failed", "error"]
    error: str | None = None
    duration_ms: int | None = None
