"""User and profile schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from paperly.modules.users.models import UserRole


class ProfileResponse(BaseModel):
    """Public view of a profile. Also the value held in the profile cache."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    full_name: str
    phone: str | None = None
    role: UserRole
    is_active: bool
    email_verified: bool
    phone_verified: bool
    last_login: datetime | None = None
    login_count: int
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(BaseModel):
    """Request body for PUT /auth/profile. Omitted fields are left unchanged."""

    full_name: str | None = Field(None, min_length=1, max_length=200)
    phone: str | None = Field(None, max_length=20)


class SecurityEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    event_data: dict[str, Any]
    ip_address: str | None = None
    user_agent: str | None = None
    created_at: datetime


class SecurityEventListResponse(BaseModel):
    events: list[SecurityEventResponse]
