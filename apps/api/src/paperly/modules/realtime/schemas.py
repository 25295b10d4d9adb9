"""Realtime schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class RealtimeEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    channel: str
    recipient_id: UUID | None = None
    data: dict[str, Any]
    created_at: datetime


class RealtimeEventListResponse(BaseModel):
    events: list[RealtimeEventResponse]
    channels: list[str]
