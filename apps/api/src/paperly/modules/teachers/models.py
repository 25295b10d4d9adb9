"""
Teacher Models

A teacher is created by an admin and receives a submission link carrying
an opaque token. `profile_id` stays NULL until the teacher signs up through
that link, and is set exactly once.
"""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from paperly.modules.shared import BaseModel


class Teacher(BaseModel):
    """An invited teacher."""

    __tablename__ = "teachers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)

    profile_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        unique=True,
        nullable=True,
    )

    # Submission link
    submission_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    has_submitted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Inviting admin
    added_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_teachers_submission_token", "submission_token"),
        Index("ix_teachers_added_by", "added_by"),
    )

    def __repr__(self) -> str:
        return f"<Teacher(id={self.id}, email={self.email}, submitted={self.has_submitted})>"

    def is_token_expired(self, now: datetime) -> bool:
        return now >= self.token_expires_at
