"""
Realtime Event Payloads

Every event published to clients is one variant of `RealtimeEventPayload`,
a union discriminated on `event_type`. Each variant carries its own typed
`data`, so consumers never switch on an untyped blob.

Channels:
- user_<profile_id>    per-user notifications (admins and signed-up teachers)
- teacher_<teacher_id> per-teacher notifications and submission updates
- admin_events         broadcasts to every admin
- teacher_events       token lifecycle broadcasts to admins
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter

ADMIN_CHANNEL = "admin_events"
TEACHER_EVENTS_CHANNEL = "teacher_events"


def user_channel(profile_id: UUID) -> str:
    return f"user_{profile_id}"


def teacher_channel(teacher_id: UUID) -> str:
    return f"teacher_{teacher_id}"


class TokenCreatedData(BaseModel):
    teacher_id: UUID
    expires_at: datetime


class NotificationCreatedData(BaseModel):
    notification_id: UUID
    recipient_id: UUID
    title: str
    message: str
    severity: str
    related_id: UUID | None = None
    related_type: str | None = None


class SubmissionCreatedData(BaseModel):
    submission_id: UUID
    teacher_id: UUID
    teacher_name: str
    subject: str


class SubmissionUpdatedData(BaseModel):
    submission_id: UUID
    teacher_id: UUID
    status: str
    payment_status: str
    payment_amount: Decimal | None = None


class PaymentUpdatedData(BaseModel):
    submission_id: UUID
    teacher_id: UUID
    payment_status: str
    payment_amount: Decimal | None = None


class TokenCreatedEvent(BaseModel):
    event_type: Literal["token_created"] = "token_created"
    data: TokenCreatedData


class NotificationCreatedEvent(BaseModel):
    event_type: Literal["notification_created"] = "notification_created"
    data: NotificationCreatedData


class SubmissionCreatedEvent(BaseModel):
    event_type: Literal["submission_created"] = "submission_created"
    data: SubmissionCreatedData


class SubmissionUpdatedEvent(BaseModel):
    event_type: Literal["submission_updated"] = "submission_updated"
    data: SubmissionUpdatedData


class PaymentUpdatedEvent(BaseModel):
    event_type: Literal["payment_updated"] = "payment_updated"
    data: PaymentUpdatedData


RealtimeEventPayload = Annotated[
    TokenCreatedEvent
    | NotificationCreatedEvent
    | SubmissionCreatedEvent
    | SubmissionUpdatedEvent
    | PaymentUpdatedEvent,
    Field(discriminator="event_type"),
]

event_adapter: TypeAdapter[RealtimeEventPayload] = TypeAdapter(RealtimeEventPayload)


def parse_event(raw: dict) -> RealtimeEventPayload:
    """Validate a stored or received event dict into its typed variant."""
    return event_adapter.validate_python(raw)
