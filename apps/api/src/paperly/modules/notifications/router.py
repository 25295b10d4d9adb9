"""
Notifications Router

Pull side of notification delivery. Clients load these on start-up and
after a realtime reconnect.

Endpoints:
- GET /notifications - Latest notifications for the current user
- GET /notifications/unread-count - Unread count
- PUT /notifications/read-all - Mark everything read
- PUT /notifications/{id}/read - Mark one notification read
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser, get_current_user
from paperly.core.database import get_db
from paperly.core.exceptions import ServiceError, raise_internal_error, raise_service_error
from paperly.modules.notifications import service
from paperly.modules.notifications.schemas import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=NotificationListResponse, summary="List Notifications")
async def list_notifications(
    unread_only: bool = Query(False, description="Only return unread notifications"),
    limit: int = Query(50, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> NotificationListResponse:
    """Newest notifications addressed to the current user."""
    try:
        notifications = await service.list_notifications(db, user, unread_only, limit)
        unread = await service.get_unread_count(db, user)
        return NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
            unread_count=unread,
        )
    except Exception as e:
        raise_internal_error(e, "listing notifications")


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Unread Count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await service.get_unread_count(db, user))


@router.put("/read-all", response_model=MarkAllReadResponse, summary="Mark All Read")
async def mark_all_read(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> MarkAllReadResponse:
    try:
        return MarkAllReadResponse(updated=await service.mark_all_as_read(db, user))
    except Exception as e:
        raise_internal_error(e, "marking notifications read")


@router.put("/{notification_id}/read", response_model=NotificationResponse, summary="Mark Read")
async def mark_read(
    notification_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(get_current_user),
) -> NotificationResponse:
    """
    Mark a notification as read.

    Raises:
        HTTPException 404: If the notification is not addressed to the user
    """
    try:
        notification = await service.mark_as_read(db, user, notification_id)
        return NotificationResponse.model_validate(notification)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"marking notification {notification_id} read")
