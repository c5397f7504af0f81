"""Message and fragment schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.models import MessageRole, MessageType

from .project import validate_request_value


class FragmentRead(BaseModel):
    """Schema for reading a fragment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    message_id: str
    sandbox_url: str
    title: str
    files: dict[str, str]
    created_at: datetime
    updated_at: datetime


class FragmentFilesUpdate(BaseModel):
    """Wholesale replacement of a fragment's file mapping."""

    files: dict[str, str]


class MessageCreate(BaseModel):
    """Follow-up request in an existing project."""

    value: str
    project_id: str = Field(..., min_length=1)

    check_value = field_validator("value")(validate_request_value)


class MessageRead(BaseModel):
    """Schema for reading a message with its fragment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    project_id: str
    content: str
    role: MessageRole
    type: MessageType
    created_at: datetime
    updated_at: datetime
    fragment: FragmentRead | None = None
