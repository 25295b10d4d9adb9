"""Teacher errors shared by the token and submission services."""

from uuid import UUID

from paperly.core.exceptions import ConflictError, NotFoundError


class TeacherNotFoundError(NotFoundError):
    def __init__(self, teacher_id: UUID | None = None):
        message = f"Teacher {teacher_id} not found" if teacher_id else "Teacher not found"
        super().__init__(message=message, error_code="TEACHER_NOT_FOUND")


class TeacherExistsError(ConflictError):
    def __init__(self, email: str):
        super().__init__(
            message=f"A teacher with email {email} already exists",
            error_code="TEACHER_EXISTS",
        )


class AlreadyRegisteredError(ConflictError):
    def __init__(self):
        super().__init__(
            message="This teacher has already signed up",
            error_code="ALREADY_REGISTERED",
        )


class SubmissionAlreadyCompletedError(ConflictError):
    def __init__(self):
        super().__init__(
            message="This teacher has already submitted a question paper",
            error_code="SUBMISSION_ALREADY_COMPLETED",
        )
