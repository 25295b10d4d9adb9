"""
Submission Repository

Database operations for submissions, the review/payment state machines
and dashboard statistics.
"""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import asc, case, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.exceptions import ConflictError
from paperly.modules.submissions.models import PaymentStatus, Submission, SubmissionStatus
from paperly.modules.teachers.models import Teacher

logger = logging.getLogger(__name__)


# ============================================
# State Machines
# ============================================

VALID_STATUS_TRANSITIONS: dict[SubmissionStatus, set[SubmissionStatus]] = {
    SubmissionStatus.PENDING: {
        SubmissionStatus.UNDER_REVIEW,
        SubmissionStatus.APPROVED,
        SubmissionStatus.REJECTED,
    },
    SubmissionStatus.UNDER_REVIEW: {
        SubmissionStatus.APPROVED,
        SubmissionStatus.REJECTED,
    },
    # Final states
    SubmissionStatus.APPROVED: set(),
    SubmissionStatus.REJECTED: set(),
}

VALID_PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING},
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: set(),
    PaymentStatus.FAILED: set(),
}


class InvalidStatusTransitionError(ConflictError):
    """Raised when a review or payment transition is not allowed."""

    def __init__(self, current: str, requested: str, allowed: set[Any] | None = None):
        allowed_values = sorted(s.value for s in allowed or set())
        super().__init__(
            message=(
                f"Invalid status transition: {current} -> {requested}. "
                f"Valid transitions: {allowed_values}"
            ),
            error_code="INVALID_STATUS_TRANSITION",
        )


def validate_status_transition(current: SubmissionStatus, new: SubmissionStatus) -> None:
    allowed = VALID_STATUS_TRANSITIONS.get(current, set())
    if new not in allowed:
        raise InvalidStatusTransitionError(current.value, new.value, allowed)


def validate_payment_transition(current: PaymentStatus, new: PaymentStatus) -> None:
    allowed = VALID_PAYMENT_TRANSITIONS.get(current, set())
    if new not in allowed:
        raise InvalidStatusTransitionError(current.value, new.value, allowed)


# ============================================
# Queries
# ============================================


async def create(db: AsyncSession, **fields: Any) -> Submission:
    """Insert a submission (pending/pending) and flush."""
    submission = Submission(
        status=SubmissionStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
        **fields,
    )
    db.add(submission)
    await db.flush()
    return submission


async def get_by_id(db: AsyncSession, submission_id: UUID) -> Submission | None:
    result = await db.execute(select(Submission).where(Submission.id == submission_id))
    return result.unique().scalar_one_or_none()


async def get_by_id_for_update(db: AsyncSession, submission_id: UUID) -> Submission | None:
    """Load a submission and lock its row for this transaction."""
    result = await db.execute(
        select(Submission)
        .where(Submission.id == submission_id)
        .with_for_update(of=Submission)
    )
    return result.unique().scalar_one_or_none()


async def list_submissions(
    db: AsyncSession,
    *,
    status: SubmissionStatus | None = None,
    payment_status: PaymentStatus | None = None,
    search: str | None = None,
    sort_order: str = "desc",
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Submission], int]:
    """
    Submissions with optional filters and pagination, newest first by default.

    Args:
        db: Database session
        status: Filter by review status
        payment_status: Filter by payment status
        search: Search teacher name/email or subject
        sort_order: asc or desc by creation time
        skip: Number of records to skip
        limit: Maximum records to return

    Returns:
        Tuple of (submissions, total count matching filters)
    """
    query = select(Submission).join(Teacher, Submission.teacher_id == Teacher.id)

    if status is not None:
        query = query.where(Submission.status == status)

    if payment_status is not None:
        query = query.where(Submission.payment_status == payment_status)

    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Teacher.name.ilike(pattern),
                Teacher.email.ilike(pattern),
                Submission.subject.ilike(pattern),
            )
        )

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    order = desc if sort_order.lower() == "desc" else asc
    query = query.order_by(order(Submission.created_at)).offset(skip).limit(limit)

    result = await db.execute(query)
    return list(result.unique().scalars().all()), total


async def get_dashboard_stats(db: AsyncSession) -> dict[str, Any]:
    """
    Counts for the admin dashboard.

    Returns:
        Dict with teacher, submission, review and payment counts
    """
    teacher_counts = await db.execute(
        select(
            func.count(Teacher.id).label("total_teachers"),
            func.count(case((Teacher.has_submitted.is_(False), 1))).label("awaiting_submission"),
        )
    )
    teachers = teacher_counts.one()

    submission_counts = await db.execute(
        select(
            func.count(Submission.id).label("total_submissions"),
            func.count(case((Submission.status == SubmissionStatus.PENDING, 1))).label(
                "pending_reviews"
            ),
            func.count(case((Submission.status == SubmissionStatus.UNDER_REVIEW, 1))).label(
                "under_review"
            ),
            func.count(case((Submission.status == SubmissionStatus.APPROVED, 1))).label(
                "approved"
            ),
            func.count(case((Submission.status == SubmissionStatus.REJECTED, 1))).label(
                "rejected"
            ),
            func.count(
                case((Submission.payment_status == PaymentStatus.PROCESSING, 1))
            ).label("processing_payments"),
            func.count(
                case((Submission.payment_status == PaymentStatus.COMPLETED, 1))
            ).label("completed_payments"),
            func.coalesce(
                func.sum(
                    case(
                        (
                            Submission.payment_status == PaymentStatus.COMPLETED,
                            Submission.payment_amount,
                        ),
                        else_=0,
                    )
                ),
                0,
            ).label("total_paid"),
        )
    )
    submissions = submission_counts.one()

    return {
        "total_teachers": teachers.total_teachers or 0,
        "awaiting_submission": teachers.awaiting_submission or 0,
        "total_submissions": submissions.total_submissions or 0,
        "pending_reviews": submissions.pending_reviews or 0,
        "under_review": submissions.under_review or 0,
        "approved": submissions.approved or 0,
        "rejected": submissions.rejected or 0,
        "processing_payments": submissions.processing_payments or 0,
        "completed_payments": submissions.completed_payments or 0,
        "total_paid": Decimal(submissions.total_paid or 0),
    }

