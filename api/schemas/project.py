"""Project schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_VALUE_LENGTH = 10000


def validate_request_value(value: str) -> str:
    """Request text must be non-empty and at most MAX_VALUE_LENGTH characters."""
    if not value:
        raise ValueError("Message is required")
    if len(value) > MAX_VALUE_LENGTH:
        raise ValueError("Value is too long...")
    return value


class ProjectCreate(BaseModel):
    """Schema for creating a project from the first request."""

    value: str = Field(..., description="Natural-language description of the app")

    check_value = field_validator("value")(validate_request_value)


class ProjectRead(BaseModel):
    """Schema for reading a project."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    user_id: str
    created_at: datetime
    updated_at: datetime


class ProjectDeleted(BaseModel):
    success: bool = True
