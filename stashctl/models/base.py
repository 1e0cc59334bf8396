"""Base model and backend records for stashctl."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel as PydanticBaseModel
from pydantic import ConfigDict, Field


class BaseModel(PydanticBaseModel):
    """Base model with common configuration."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )


class Identity(BaseModel):
    """Authenticated user as returned by the auth service."""

    id: str = Field(..., description="User ID")
    email: str | None = Field(None, description="Sign-in email")
    created_at: datetime | None = Field(None, description="Account creation time")


class AuthSession(BaseModel):
    """Result of a password sign-in."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = 3600
    refresh_token: str | None = None
    user: Identity


class FileRecord(BaseModel):
    """Row written to the ``files`` table after a blob upload."""

    owner: str = Field(..., serialization_alias="user_id", description="Owning user ID")
    name: str = Field(..., description="Original file name")
    size: int = Field(..., ge=0, description="Stored size in bytes")
    mime_type: str = Field(..., description="Declared media type")
    storage_path: str = Field(..., description="Object path inside the bucket")
    folder_id: str | None = Field(None, description="Parent folder, if any")

    def to_insert(self) -> dict[str, Any]:
        """Payload for the REST insert (``folder_id`` kept even when null)."""
        return self.model_dump(by_alias=True)


class MaintenanceMode(BaseModel):
    """``maintenance_mode`` site setting."""

    enabled: bool = False
    message: str = ""


class Announcement(BaseModel):
    """``announcement`` site setting."""

    enabled: bool = False
    message: str = ""
    type: str = "info"
