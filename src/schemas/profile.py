"""Profile schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.profile import USERNAME_MIN_LENGTH


class ProfileUpdate(BaseModel):
    """Update the caller's profile. Fields sent as null are cleared."""

    username: str | None = Field(None, min_length=USERNAME_MIN_LENGTH, max_length=255)
    full_name: str | None = Field(None, max_length=255)
    avatar_url: str | None = Field(None, max_length=1024)
    website: str | None = Field(None, max_length=2048)


class ProfileResponse(BaseModel):
    """Public profile."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    updated_at: datetime | None
    username: str | None
    full_name: str | None
    avatar_url: str | None
    website: str | None
