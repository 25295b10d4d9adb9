"""
Submission Service Layer

Recording submissions and moving them through review and payment.

Recording a submission is one transaction: the submission row, the
teacher's `has_submitted` flag, the consumed token and both notifications
commit together or not at all. Live events and emails go out after the
commit and never undo it when they fail.

Review status: pending -> under_review -> approved/rejected (final).
Payment status (approved submissions only):
pending -> processing -> completed/failed (final).
"""

import logging
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.email import (
    send_payment_update,
    send_submission_received,
    send_submission_reviewed,
)
from paperly.core.exceptions import ConflictError, NotFoundError
from paperly.core.storage import delete_file, save_question_paper
from paperly.modules.notifications.models import NotificationSeverity, RecipientType, RelatedType
from paperly.modules.notifications.service import create_notification
from paperly.modules.realtime.events import (
    ADMIN_CHANNEL,
    PaymentUpdatedData,
    PaymentUpdatedEvent,
    SubmissionCreatedData,
    SubmissionCreatedEvent,
    SubmissionUpdatedData,
    SubmissionUpdatedEvent,
    teacher_channel,
)
from paperly.modules.realtime.models import RealtimeEvent
from paperly.modules.realtime.service import create_realtime_event, publish_events
from paperly.modules.submissions import repository
from paperly.modules.submissions.models import PaymentStatus, Submission, SubmissionStatus
from paperly.modules.submissions.schemas import (
    BankDetails,
    PaymentUpdateRequest,
    ReviewRequest,
    SubjectDetails,
)
from paperly.modules.teachers import repository as teacher_repository
from paperly.modules.teachers.exceptions import SubmissionAlreadyCompletedError
from paperly.modules.teachers.models import Teacher
from paperly.modules.tokens.models import TokenType
from paperly.modules.tokens.service import (
    TokenRejectedError,
    TokenValidationCode,
    TokenValidationResult,
    consume_submission_token,
)

logger = logging.getLogger(__name__)


class SubmissionNotFoundError(NotFoundError):
    def __init__(self, submission_id: UUID | None = None):
        message = (
            f"Submission {submission_id} not found" if submission_id else "Submission not found"
        )
        super().__init__(message=message, error_code="SUBMISSION_NOT_FOUND")


class PaymentNotAllowedError(ConflictError):
    def __init__(self, status: SubmissionStatus):
        super().__init__(
            message=(
                "Payment can only be updated for approved submissions "
                f"(status is {status.value})"
            ),
            error_code="INVALID_STATUS_TRANSITION",
        )


def format_amount(amount: Decimal) -> str:
    return f"₹{amount:,.2f}"


def status_label(status: SubmissionStatus) -> str:
    return status.value.replace("_", " ").title()


def _rejected(code: TokenValidationCode) -> TokenRejectedError:
    return TokenRejectedError(TokenValidationResult.failure(TokenType.SUBMISSION, code))


# ============================================
# Submission Recording
# ============================================


async def record_submission(
    db: AsyncSession,
    redis: Redis | None,
    token: str,
    bank: BankDetails,
    subject: SubjectDetails,
    file_name: str | None,
    file_content: bytes | None,
    now: datetime | None = None,
) -> Submission:
    """
    Record a teacher's submission.

    Preconditions are checked in this order: the token belongs to a
    teacher, the teacher has not submitted, the token has not expired, and
    the file is present, allowed and within the size limit.

    Args:
        db: Database session
        redis: Redis client for live events (None if unavailable)
        token: Submission token from the link
        bank: Bank details
        subject: Subject details
        file_name: Original name of the uploaded file
        file_content: Uploaded file bytes
        now: Override for the current time

    Returns:
        The new Submission (pending review, payment pending)

    Raises:
        TokenRejectedError: INVALID_TOKEN (404) or TOKEN_EXPIRED (400)
        SubmissionAlreadyCompletedError: Teacher already submitted (409)
        FileRequiredError: No file uploaded (400)
        InvalidFileError: Wrong type or too large (400)
    """
    now = now or datetime.now(UTC)

    teacher = await teacher_repository.get_by_token_for_update(db, token)
    if teacher is None:
        logger.warning("Submission attempted with an unknown token")
        raise _rejected(TokenValidationCode.INVALID_TOKEN)

    if teacher.has_submitted:
        logger.warning(f"Repeat submission attempted for teacher {teacher.id}")
        raise SubmissionAlreadyCompletedError()

    if teacher.is_token_expired(now):
        raise _rejected(TokenValidationCode.TOKEN_EXPIRED)

    stored = await save_question_paper(file_name, file_content)

    try:
        submission = await repository.create(
            db,
            teacher_id=teacher.id,
            **bank.model_dump(),
            **subject.model_dump(),
            file_name=stored.file_name,
            original_name=stored.original_name,
            file_path=stored.path,
            file_size=stored.size,
        )
        teacher.has_submitted = True
        await consume_submission_token(db, teacher)

        events = await _record_submission_notifications(db, teacher, submission)
        await db.commit()
    except Exception:
        await db.rollback()
        await delete_file(stored.path)
        raise

    await db.refresh(submission)
    logger.info(f"Submission {submission.id} recorded for teacher {teacher.id}")

    await publish_events(redis, events)
    await send_submission_received(teacher.email, teacher.name, submission.subject)

    return submission


async def _record_submission_notifications(
    db: AsyncSession,
    teacher: Teacher,
    submission: Submission,
) -> list[RealtimeEvent]:
    """Teacher and admin notifications plus the admin broadcast (flush only)."""
    teacher_note = await create_notification(
        db,
        recipient_id=teacher.id,
        recipient_type=RecipientType.TEACHER,
        title="Submission Successful",
        message=(
            f"Your {submission.subject} question paper has been submitted successfully "
            "and is pending review."
        ),
        severity=NotificationSeverity.SUCCESS,
        related_id=submission.id,
        related_type=RelatedType.SUBMISSION,
    )
    events = [teacher_note.event]

    if teacher.added_by is not None:
        admin_note = await create_notification(
            db,
            recipient_id=teacher.added_by,
            recipient_type=RecipientType.ADMIN,
            title="New Submission Received",
            message=f"{teacher.name} has submitted their examination paper",
            severity=NotificationSeverity.INFO,
            related_id=submission.id,
            related_type=RelatedType.SUBMISSION,
        )
        events.append(admin_note.event)

    broadcast = await create_realtime_event(
        db,
        SubmissionCreatedEvent(
            data=SubmissionCreatedData(
                submission_id=submission.id,
                teacher_id=teacher.id,
                teacher_name=teacher.name,
                subject=submission.subject,
            )
        ),
        channel=ADMIN_CHANNEL,
    )
    events.append(broadcast)
    return events


# ============================================
# Review and Payment
# ============================================


def _review_message(
    status: SubmissionStatus,
    payment_amount: Decimal | None,
    review_notes: str | None,
) -> tuple[str, NotificationSeverity]:
    if status == SubmissionStatus.APPROVED:
        message = "Your submission has been accepted!"
        if payment_amount is not None:
            message += f" Payment of {format_amount(payment_amount)} is being processed."
        return message, NotificationSeverity.SUCCESS

    if status == SubmissionStatus.REJECTED:
        message = "Your submission has been rejected."
        if review_notes:
            message += f" {review_notes}"
        return message, NotificationSeverity.ERROR

    return "Your submission is now under review.", NotificationSeverity.INFO


def _payment_message(
    status: PaymentStatus,
    payment_amount: Decimal | None,
) -> tuple[str, NotificationSeverity]:
    if status == PaymentStatus.COMPLETED:
        if payment_amount is not None:
            message = f"Payment of {format_amount(payment_amount)} has been completed!"
        else:
            message = "Your payment has been completed!"
        return message, NotificationSeverity.SUCCESS
    if status == PaymentStatus.FAILED:
        return "Payment status updated to failed", NotificationSeverity.ERROR
    return f"Payment status updated to {status.value}", NotificationSeverity.INFO


async def _broadcast(
    db: AsyncSession,
    payload: SubmissionUpdatedEvent | PaymentUpdatedEvent,
    teacher_id: UUID,
) -> list[RealtimeEvent]:
    """Record an update for the admins and for the teacher (flush only)."""
    return [
        await create_realtime_event(db, payload, channel=ADMIN_CHANNEL),
        await create_realtime_event(
            db, payload, channel=teacher_channel(teacher_id), recipient_id=teacher_id
        ),
    ]


async def review_submission(
    db: AsyncSession,
    redis: Redis | None,
    submission_id: UUID,
    admin_id: UUID,
    data: ReviewRequest,
    now: datetime | None = None,
) -> Submission:
    """
    Move a submission to a new review status.

    Approval with a payment amount records the amount and moves payment
    to processing. The teacher is notified in the same transaction.

    Raises:
        SubmissionNotFoundError: If the submission does not exist
        InvalidStatusTransitionError: If the transition is not allowed
    """
    now = now or datetime.now(UTC)

    submission = await repository.get_by_id_for_update(db, submission_id)
    if submission is None:
        raise SubmissionNotFoundError(submission_id)

    repository.validate_status_transition(submission.status, data.status)

    submission.status = data.status
    submission.review_notes = data.review_notes
    submission.reviewed_by = admin_id
    submission.reviewed_at = now

    if data.status == SubmissionStatus.APPROVED and data.payment_amount is not None:
        repository.validate_payment_transition(submission.payment_status, PaymentStatus.PROCESSING)
        submission.payment_amount = data.payment_amount
        submission.payment_status = PaymentStatus.PROCESSING

    teacher = submission.teacher
    label = status_label(data.status)
    message, severity = _review_message(data.status, submission.payment_amount, data.review_notes)

    created = await create_notification(
        db,
        recipient_id=teacher.id,
        recipient_type=RecipientType.TEACHER,
        title=f"Submission {label}",
        message=message,
        severity=severity,
        related_id=submission.id,
        related_type=RelatedType.SUBMISSION,
    )
    events = [created.event]
    events += await _broadcast(
        db,
        SubmissionUpdatedEvent(
            data=SubmissionUpdatedData(
                submission_id=submission.id,
                teacher_id=teacher.id,
                status=submission.status.value,
                payment_status=submission.payment_status.value,
                payment_amount=submission.payment_amount,
            )
        ),
        teacher.id,
    )
    await db.commit()
    await db.refresh(submission, attribute_names=["updated_at"])

    logger.info(
        f"Submission {submission.id} reviewed by {admin_id}: {submission.status.value} "
        f"(payment {submission.payment_status.value})"
    )

    await publish_events(redis, events)
    await send_submission_reviewed(teacher.email, teacher.name, label, message, data.review_notes)

    return submission


async def update_payment_status(
    db: AsyncSession,
    redis: Redis | None,
    submission_id: UUID,
    admin_id: UUID,
    data: PaymentUpdateRequest,
) -> Submission:
    """
    Move an approved submission's payment to a new status.

    Raises:
        SubmissionNotFoundError: If the submission does not exist
        PaymentNotAllowedError: If the submission is not approved
        InvalidStatusTransitionError: If the transition is not allowed
    """
    submission = await repository.get_by_id_for_update(db, submission_id)
    if submission is None:
        raise SubmissionNotFoundError(submission_id)

    if submission.status != SubmissionStatus.APPROVED:
        raise PaymentNotAllowedError(submission.status)

    repository.validate_payment_transition(submission.payment_status, data.status)
    submission.payment_status = data.status

    teacher = submission.teacher
    message, severity = _payment_message(data.status, submission.payment_amount)

    created = await create_notification(
        db,
        recipient_id=teacher.id,
        recipient_type=RecipientType.TEACHER,
        title="Payment Update",
        message=message,
        severity=severity,
        related_id=submission.id,
        related_type=RelatedType.PAYMENT,
    )
    events = [created.event]
    events += await _broadcast(
        db,
        PaymentUpdatedEvent(
            data=PaymentUpdatedData(
                submission_id=submission.id,
                teacher_id=teacher.id,
                payment_status=submission.payment_status.value,
                payment_amount=submission.payment_amount,
            )
        ),
        teacher.id,
    )
    await db.commit()
    await db.refresh(submission, attribute_names=["updated_at"])

    logger.info(
        f"Payment for submission {submission.id} set to {data.status.value} by {admin_id}"
    )

    await publish_events(redis, events)
    await send_payment_update(teacher.email, teacher.name, message)

    return submission


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
    return await repository.list_submissions(
        db,
        status=status,
        payment_status=payment_status,
        search=search,
        sort_order=sort_order,
        skip=skip,
        limit=limit,
    )


async def get_dashboard_stats(db: AsyncSession) -> dict[str, Any]:
    return await repository.get_dashboard_stats(db)
