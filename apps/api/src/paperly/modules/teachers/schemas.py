"""Teacher schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from paperly.modules.users.schemas import ProfileResponse


class TeacherCreate(BaseModel):
    """Request body for POST /admin/add-teacher."""

    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: str = Field(..., min_length=5, max_length=20)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("name", "phone")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()


class TeacherResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str
    profile_id: UUID | None = None
    token_expires_at: datetime
    has_submitted: bool
    added_by: UUID | None = None
    created_at: datetime
    updated_at: datetime


class TeacherLinkResponse(BaseModel):
    """A teacher with their current submission link."""

    teacher: TeacherResponse
    submission_url: str
    signup_url: str


class TeacherListResponse(BaseModel):
    teachers: list[TeacherResponse]
    total: int
    skip: int
    limit: int


class TeacherPublicInfo(BaseModel):
    """What a token holder may see about the teacher the link belongs to."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    has_submitted: bool
    token_expires_at: datetime
    is_registered: bool = False


class TokenValidationResponse(BaseModel):
    valid: bool
    error_code: str | None = None
    message: str | None = None
    validation_count: int = 0
    teacher: TeacherPublicInfo | None = None


class TeacherSignup(BaseModel):
    """Request body for POST /teacher/signup/{token}."""

    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, min_length=1, max_length=200)


class TeacherSignupResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: ProfileResponse
    teacher_id: UUID
