"""
Notification Models

A notification has exactly one recipient: an admin profile or a teacher
record. After creation only `is_read` ever changes.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from paperly.core.database import Base


class RecipientType(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"


class NotificationSeverity(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class RelatedType(str, enum.Enum):
    SUBMISSION = "submission"
    PAYMENT = "payment"
    TEACHER = "teacher"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Notification(Base):
    """A message addressed to one admin or one teacher."""

    __tablename__ = "notifications"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Profile id for admins, teacher id for teachers
    recipient_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    recipient_type: Mapped[RecipientType] = mapped_column(
        Enum(RecipientType, name="recipient_type", values_callable=_enum_values),
        nullable=False,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[NotificationSeverity] = mapped_column(
        Enum(NotificationSeverity, name="notification_severity", values_callable=_enum_values),
        nullable=False,
        default=NotificationSeverity.INFO,
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    related_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    related_type: Mapped[RelatedType | None] = mapped_column(
        Enum(RelatedType, name="notification_related_type", values_callable=_enum_values),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
        Index("ix_notifications_recipient_unread", "recipient_id", "is_read"),
    )

    def __repr__(self) -> str:
        recipient = f"{self.recipient_type.value}:{self.recipient_id}"
        return f"<Notification(id={self.id}, recipient={recipient})>"
