"""
URL Token Models

Tracking rows for every token handed out in a link. Only the SHA-256 hash
of the token is stored here.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from paperly.core.database import Base


class TokenType(str, enum.Enum):
    """What a link token grants access to."""

    SUBMISSION = "submission"
    INVITATION = "invitation"
    RESET = "reset"
    VERIFICATION = "verification"


class UrlValidation(Base):
    """Validation state for one issued token."""

    __tablename__ = "url_validations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    token_type: Mapped[TokenType] = mapped_column(
        Enum(TokenType, name="url_token_type", values_callable=lambda t: [m.value for m in t]),
        nullable=False,
    )

    # Owner: a profile (reset/verification, signed-up teachers) and/or a teacher
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=True,
    )
    teacher_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=True,
    )

    # Last client seen validating the token
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_valid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    validation_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_validated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("token_hash", "token_type", name="uq_url_validations_token_type"),
        Index("ix_url_validations_teacher_id", "teacher_id"),
        Index("ix_url_validations_user_id", "user_id"),
        Index("ix_url_validations_expires_at", "expires_at"),
    )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at
