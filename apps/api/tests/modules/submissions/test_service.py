"""
Unit tests for the submissions service layer.

These tests cover:
- Recording a submission (preconditions, single transaction, cleanup)
- Review with notification wording and payment hand-off
- Payment updates on approved submissions only
"""

from contextlib import contextmanager
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from paperly.core.storage import FileRequiredError, StoredFile
from paperly.modules.notifications.models import NotificationSeverity, RecipientType, RelatedType
from paperly.modules.notifications.service import CreatedNotification
from paperly.modules.realtime.events import ADMIN_CHANNEL, teacher_channel
from paperly.modules.submissions.models import PaymentStatus, SubmissionStatus
from paperly.modules.submissions.repository import InvalidStatusTransitionError
from paperly.modules.submissions.schemas import (
    BankDetails,
    PaymentUpdateRequest,
    ReviewRequest,
    SubjectDetails,
)
from paperly.modules.submissions.service import (
    PaymentNotAllowedError,
    SubmissionNotFoundError,
    format_amount,
    record_submission,
    review_submission,
    update_payment_status,
)
from paperly.modules.teachers.exceptions import SubmissionAlreadyCompletedError
from paperly.modules.tokens.service import TokenRejectedError

SERVICE = "paperly.modules.submissions.service"

BANK = BankDetails(
    account_number="123456789012",
    routing_code="SBIN0001234",
    account_holder_name="Asha Rao",
)
SUBJECT = SubjectDetails(subject="Mathematics", class_name="10", board="CBSE", exam_type="Final")
STORED = StoredFile(
    file_name="0" * 32 + ".pdf",
    original_name="maths.pdf",
    path="uploads/question-papers/" + "0" * 32 + ".pdf",
    size=4,
)


def _created(**kwargs) -> CreatedNotification:
    return CreatedNotification(notification=MagicMock(**kwargs), event=MagicMock())


@contextmanager
def _patched_service():
    """Patch every collaborator of the service module and yield the mocks."""
    with (
        patch(f"{SERVICE}.repository") as repo,
        patch(f"{SERVICE}.teacher_repository") as teachers,
        patch(f"{SERVICE}.save_question_paper", AsyncMock(return_value=STORED)) as save,
        patch(f"{SERVICE}.delete_file", AsyncMock()) as delete,
        patch(f"{SERVICE}.consume_submission_token", AsyncMock()) as consume,
        patch(
            f"{SERVICE}.create_notification",
            AsyncMock(side_effect=lambda db, **kw: _created(**kw)),
        ) as notify,
        patch(f"{SERVICE}.create_realtime_event", AsyncMock()) as record_event,
        patch(f"{SERVICE}.publish_events", AsyncMock(return_value=0)) as publish,
        patch(f"{SERVICE}.send_submission_received", AsyncMock(return_value=True)) as received,
        patch(f"{SERVICE}.send_submission_reviewed", AsyncMock(return_value=True)) as reviewed,
        patch(f"{SERVICE}.send_payment_update", AsyncMock(return_value=True)) as payment,
    ):
        repo.validate_status_transition = MagicMock()
        repo.validate_payment_transition = MagicMock()
        yield MagicMock(
            repo=repo,
            teachers=teachers,
            save=save,
            delete=delete,
            consume=consume,
            notify=notify,
            record_event=record_event,
            publish=publish,
            received=received,
            reviewed=reviewed,
            payment=payment,
        )


class TestRecordSubmission:
    @pytest.mark.asyncio
    async def test_success(self, mock_db, mock_redis, now, teacher, submission_factory):
        with _patched_service() as m:
            m.teachers.get_by_token_for_update = AsyncMock(return_value=teacher)
            created = submission_factory(teacher)
            m.repo.create = AsyncMock(return_value=created)

            result = await record_submission(
                mock_db, mock_redis, teacher.submission_token, BANK, SUBJECT,
                "maths.pdf", b"%PDF", now=now,
            )

            assert result is created
            assert result.status == SubmissionStatus.PENDING
            assert result.payment_status == PaymentStatus.PENDING
            assert teacher.has_submitted is True

            create_kwargs = m.repo.create.call_args.kwargs
            assert create_kwargs["teacher_id"] == teacher.id
            assert create_kwargs["account_number"] == "123456789012"
            assert create_kwargs["file_path"] == STORED.path

            m.consume.assert_called_once_with(mock_db, teacher)
            mock_db.commit.assert_called_once()
            m.publish.assert_called_once()
            m.received.assert_called_once_with(teacher.email, teacher.name, "Mathematics")

    @pytest.mark.asyncio
    async def test_notifies_teacher_and_admin(
        self, mock_db, mock_redis, now, teacher, submission_factory
    ):
        with _patched_service() as m:
            m.teachers.get_by_token_for_update = AsyncMock(return_value=teacher)
            m.repo.create = AsyncMock(return_value=submission_factory(teacher))

            await record_submission(
                mock_db, mock_redis, "t", BANK, SUBJECT, "maths.pdf", b"%PDF", now=now
            )

            calls = [c.kwargs for c in m.notify.call_args_list]
            assert len(calls) == 2
            to_teacher, to_admin = calls
            assert to_teacher["recipient_id"] == teacher.id
            assert to_teacher["recipient_type"] == RecipientType.TEACHER
            assert to_teacher["title"] == "Submission Successful"
            assert to_teacher["severity"] == NotificationSeverity.SUCCESS
            assert to_admin["recipient_id"] == teacher.added_by
            assert to_admin["recipient_type"] == RecipientType.ADMIN
            assert to_admin["message"] == "Asha Rao has submitted their examination paper"
            assert to_admin["related_type"] == RelatedType.SUBMISSION

            assert m.record_event.call_args.kwargs["channel"] == ADMIN_CHANNEL

    @pytest.mark.asyncio
    async def test_unknown_token(self, mock_db, mock_redis):
        with _patched_service() as m:
            m.teachers.get_by_token_for_update = AsyncMock(return_value=None)

            with pytest.raises(TokenRejectedError) as exc_info:
                await record_submission(
                    mock_db, mock_redis, "x", BANK, SUBJECT, "maths.pdf", b"%PDF"
                )

            assert exc_info.value.error_code == "INVALID_TOKEN"
            assert exc_info.value.status_code == 404
            m.save.assert_not_called()

    @pytest.mark.asyncio
    async def test_repeat_submission_is_rejected(self, mock_db, mock_redis, teacher_factory):
        teacher = teacher_factory(has_submitted=True)
        with _patched_service() as m:
            m.teachers.get_by_token_for_update = AsyncMock(return_value=teacher)

            with pytest.raises(SubmissionAlreadyCompletedError) as exc_info:
                await record_submission(
                    mock_db, mock_redis, "t", BANK, SUBJECT, "maths.pdf", b"%PDF"
                )

            assert exc_info.value.status_code == 409
            assert exc_info.value.error_code == "SUBMISSION_ALREADY_COMPLETED"
            m.repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_token(self, mock_db, mock_redis, now, teacher_factory):
        teacher = teacher_factory(token_expires_at=now)
        with _patched_service() as m:
            m.teachers.get_by_token_for_update = AsyncMock(return_value=teacher)

            with pytest.raises(TokenRejectedError) as exc_info:
                await record_submission(
                    mock_db, mock_redis, "t", BANK, SUBJECT, "maths.pdf", b"%PDF", now=now
                )

            assert exc_info.value.error_code == "TOKEN_EXPIRED"

    @pytest.mark.asyncio
    async def test_missing_file(self, mock_db, mock_redis, now, teacher):
        with _patched_service() as m:
            m.teachers.get_by_token_for_update = AsyncMock(return_value=teacher)
            m.save.side_effect = FileRequiredError()

            with pytest.raises(FileRequiredError):
                await record_submission(
                    mock_db, mock_redis, "t", BANK, SUBJECT, None, None, now=now
                )

            assert teacher.has_submitted is False
            m.repo.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_write_rolls_back_and_removes_file(
        self, mock_db, mock_redis, now, teacher
    ):
        with _patched_service() as m:
            m.teachers.get_by_token_for_update = AsyncMock(return_value=teacher)
            m.repo.create = AsyncMock(side_effect=RuntimeError("insert failed"))

            with pytest.raises(RuntimeError):
                await record_submission(
                    mock_db, mock_redis, "t", BANK, SUBJECT, "maths.pdf", b"%PDF", now=now
                )

            mock_db.rollback.assert_called_once()
            mock_db.commit.assert_not_called()
            m.delete.assert_called_once_with(STORED.path)
            m.publish.assert_not_called()
            m.received.assert_not_called()


class TestReviewSubmission:
    @pytest.mark.asyncio
    async def test_approve_with_amount_starts_payment(
        self, mock_db, mock_redis, now, submission
    ):
        admin_id = uuid4()
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=submission)

            result = await review_submission(
                mock_db,
                mock_redis,
                submission.id,
                admin_id,
                ReviewRequest(status=SubmissionStatus.APPROVED, payment_amount=Decimal("500")),
                now=now,
            )

            assert result.status == SubmissionStatus.APPROVED
            assert result.payment_status == PaymentStatus.PROCESSING
            assert result.payment_amount == Decimal("500")
            assert result.reviewed_by == admin_id
            assert result.reviewed_at == now

            note = m.notify.call_args.kwargs
            assert note["title"] == "Submission Approved"
            assert "500" in note["message"]
            assert note["severity"] == NotificationSeverity.SUCCESS
            assert note["recipient_id"] == submission.teacher.id

            channels = [c.kwargs["channel"] for c in m.record_event.call_args_list]
            assert channels == [ADMIN_CHANNEL, teacher_channel(submission.teacher.id)]
            mock_db.commit.assert_called_once()
            m.reviewed.assert_called_once()

    @pytest.mark.asyncio
    async def test_approve_without_amount_leaves_payment_pending(
        self, mock_db, mock_redis, submission
    ):
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=submission)

            result = await review_submission(
                mock_db, mock_redis, submission.id, uuid4(),
                ReviewRequest(status=SubmissionStatus.APPROVED),
            )

            assert result.payment_status == PaymentStatus.PENDING
            assert result.payment_amount is None

    @pytest.mark.asyncio
    async def test_reject_includes_notes(self, mock_db, mock_redis, submission):
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=submission)

            await review_submission(
                mock_db, mock_redis, submission.id, uuid4(),
                ReviewRequest(status=SubmissionStatus.REJECTED, review_notes="Blurry scan."),
            )

            note = m.notify.call_args.kwargs
            assert note["title"] == "Submission Rejected"
            assert note["message"].endswith("Blurry scan.")
            assert note["severity"] == NotificationSeverity.ERROR

    @pytest.mark.asyncio
    async def test_under_review_label(self, mock_db, mock_redis, submission):
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=submission)

            await review_submission(
                mock_db, mock_redis, submission.id, uuid4(),
                ReviewRequest(status=SubmissionStatus.UNDER_REVIEW),
            )

            assert m.notify.call_args.kwargs["title"] == "Submission Under Review"

    @pytest.mark.asyncio
    async def test_final_state_is_not_changed(self, mock_db, mock_redis, submission_factory):
        submission = submission_factory(status=SubmissionStatus.REJECTED)
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=submission)
            m.repo.validate_status_transition = MagicMock(
                side_effect=InvalidStatusTransitionError("rejected", "approved")
            )

            with pytest.raises(InvalidStatusTransitionError):
                await review_submission(
                    mock_db, mock_redis, submission.id, uuid4(),
                    ReviewRequest(status=SubmissionStatus.APPROVED),
                )

            assert submission.status == SubmissionStatus.REJECTED
            mock_db.commit.assert_not_called()
            m.notify.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_found(self, mock_db, mock_redis):
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=None)

            with pytest.raises(SubmissionNotFoundError):
                await review_submission(
                    mock_db, mock_redis, uuid4(), uuid4(),
                    ReviewRequest(status=SubmissionStatus.APPROVED),
                )


class TestUpdatePaymentStatus:
    @pytest.mark.asyncio
    async def test_completed_payment(self, mock_db, mock_redis, submission_factory):
        submission = submission_factory(
            status=SubmissionStatus.APPROVED,
            payment_status=PaymentStatus.PROCESSING,
            payment_amount=Decimal("1500"),
        )
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=submission)

            result = await update_payment_status(
                mock_db, mock_redis, submission.id, uuid4(),
                PaymentUpdateRequest(status=PaymentStatus.COMPLETED),
            )

            assert result.payment_status == PaymentStatus.COMPLETED
            note = m.notify.call_args.kwargs
            assert note["title"] == "Payment Update"
            assert note["message"] == "Payment of ₹1,500.00 has been completed!"
            assert note["related_type"] == RelatedType.PAYMENT
            assert len(m.record_event.call_args_list) == 2
            m.payment.assert_called_once()

    @pytest.mark.asyncio
    async def test_requires_approved_submission(self, mock_db, mock_redis, submission):
        with _patched_service() as m:
            m.repo.get_by_id_for_update = AsyncMock(return_value=submission)

            with pytest.raises(PaymentNotAllowedError) as exc_info:
                await update_payment_status(
                    mock_db, mock_redis, submission.id, uuid4(),
                    PaymentUpdateRequest(status=PaymentStatus.PROCESSING),
                )

            assert exc_info.value.status_code == 409
            assert submission.payment_status == PaymentStatus.PENDING


def test_format_amount():
    assert format_amount(Decimal("500")) == "₹500.00"
    assert format_amount(Decimal("123456.5")) == "₹123,456.50"
