"""Notification schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from paperly.modules.notifications.models import (
    NotificationSeverity,
    RecipientType,
    RelatedType,
)


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    recipient_id: UUID
    recipient_type: RecipientType
    title: str
    message: str
    severity: NotificationSeverity
    is_read: bool
    related_id: UUID | None = None
    related_type: RelatedType | None = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkAllReadResponse(BaseModel):
    updated: int
