"""Submission schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from paperly.modules.submissions.models import PaymentStatus, SubmissionStatus


class BankDetails(BaseModel):
    """Bank details entered by the teacher, stored verbatim."""

    account_number: str = Field(..., min_length=4, max_length=34)
    routing_code: str = Field(..., min_length=4, max_length=20)
    account_holder_name: str = Field(..., min_length=1, max_length=200)


class SubjectDetails(BaseModel):
    subject: str = Field(..., min_length=1, max_length=100)
    class_name: str = Field(..., min_length=1, max_length=50)
    board: str = Field(..., min_length=1, max_length=100)
    exam_type: str = Field(..., min_length=1, max_length=100)


class TeacherSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    teacher_id: UUID
    account_number: str
    routing_code: str
    account_holder_name: str
    subject: str
    class_name: str
    board: str
    exam_type: str
    file_name: str
    original_name: str
    file_size: int
    status: SubmissionStatus
    review_notes: str | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    payment_status: PaymentStatus
    payment_amount: Decimal | None = None
    created_at: datetime
    updated_at: datetime


class SubmissionListItem(SubmissionResponse):
    teacher: TeacherSummary


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionListItem]
    total: int
    skip: int
    limit: int


class SubmitResponse(BaseModel):
    """Returned to the teacher after a successful submission."""

    message: str
    submission_id: UUID
    status: SubmissionStatus
    payment_status: PaymentStatus


class ReviewRequest(BaseModel):
    """Request body for PUT /admin/submissions/{id}/review."""

    status: SubmissionStatus
    review_notes: str | None = Field(None, max_length=5000)
    payment_amount: Decimal | None = Field(None, gt=0, max_digits=12, decimal_places=2)


class PaymentUpdateRequest(BaseModel):
    """Request body for PUT /admin/submissions/{id}/payment."""

    status: PaymentStatus


class DashboardStats(BaseModel):
    total_teachers: int
    awaiting_submission: int
    total_submissions: int
    pending_reviews: int
    under_review: int
    approved: int
    rejected: int
    processing_payments: int
    completed_payments: int
    total_paid: Decimal
