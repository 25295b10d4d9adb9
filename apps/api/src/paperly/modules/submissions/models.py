"""
Submission Models

One examination paper submitted by a teacher, with the bank details used
for payment and the review/payment state.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.dialects.postgresql import ENUM, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from paperly.modules.shared import BaseModel
from paperly.modules.teachers.models import Teacher


class SubmissionStatus(str, Enum):
    """
    Review status.

    Transitions: pending -> under_review -> approved/rejected, or
    pending -> approved/rejected directly. approved and rejected are final.
    """

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentStatus(str, Enum):
    """
    Payment status, only movable once the submission is approved.

    Transitions: pending -> processing -> completed/failed.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Submission(BaseModel):
    """A submitted question paper."""

    __tablename__ = "submissions"

    teacher_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teachers.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Bank details, stored as entered
    account_number: Mapped[str] = mapped_column(String(34), nullable=False)
    routing_code: Mapped[str] = mapped_column(String(20), nullable=False)
    account_holder_name: Mapped[str] = mapped_column(String(200), nullable=False)

    # Subject details
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    class_name: Mapped[str] = mapped_column(String(50), nullable=False)
    board: Mapped[str] = mapped_column(String(100), nullable=False)
    exam_type: Mapped[str] = mapped_column(String(100), nullable=False)

    # Uploaded file
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Review
    status: Mapped[SubmissionStatus] = mapped_column(
        ENUM(
            SubmissionStatus,
            name="submission_status",
            create_type=True,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=SubmissionStatus.PENDING,
    )
    review_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="SET NULL"),
        nullable=True,
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        ENUM(
            PaymentStatus,
            name="payment_status",
            create_type=True,
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    teacher: Mapped[Teacher] = relationship("Teacher", lazy="joined")

    __table_args__ = (
        Index("ix_submissions_teacher_id", "teacher_id"),
        Index("ix_submissions_status", "status"),
        Index("ix_submissions_payment_status", "payment_status"),
        Index("ix_submissions_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, teacher={self.teacher_id}, status={self.status.value})>"
