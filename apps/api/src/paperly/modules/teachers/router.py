"""
Teacher Public Router

Token-gated endpoints reached from the links emailed to teachers. No
authentication; the token in the path is the credential.

Endpoints:
- GET /teacher/validate/{token} - Check a submission link
- POST /teacher/signup/{token} - Create the teacher's account (once)
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.database import get_db
from paperly.core.exceptions import ServiceError, raise_internal_error, raise_service_error
from paperly.core.rate_limit import client_ip, client_user_agent
from paperly.core.redis import get_redis
from paperly.modules.teachers import service
from paperly.modules.teachers.schemas import (
    TeacherPublicInfo,
    TeacherSignup,
    TeacherSignupResponse,
    TokenValidationResponse,
)
from paperly.modules.users.schemas import ProfileResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/validate/{token}", response_model=TokenValidationResponse, summary="Validate Link")
async def validate_link(
    token: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> TokenValidationResponse:
    """
    Validate a submission link.

    Failures are reported in the body (`valid: false` plus an error code)
    rather than as HTTP errors, so the page can explain what went wrong.
    """
    try:
        result, teacher = await service.get_teacher_for_token(
            db, token, client_ip(request), client_user_agent(request)
        )
        info = None
        if teacher is not None:
            info = TeacherPublicInfo.model_validate(teacher)
            info.is_registered = teacher.profile_id is not None
        return TokenValidationResponse(
            valid=result.valid,
            error_code=result.error_code.value if result.error_code else None,
            message=result.message,
            validation_count=result.validation_count,
            teacher=info,
        )
    except Exception as e:
        raise_internal_error(e, "validating submission link")


@router.post(
    "/signup/{token}",
    response_model=TeacherSignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Teacher Signup",
)
async def signup(
    token: str,
    data: TeacherSignup,
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
) -> TeacherSignupResponse:
    """
    Create an account for the teacher a link belongs to.

    Raises:
        HTTPException 400/404/429: Link expired, no longer valid, unknown or rate limited
        HTTPException 409: Teacher already registered, or email taken
    """
    try:
        auth, teacher = await service.signup_via_token(
            db, redis, token, data, client_ip(request), client_user_agent(request)
        )
        return TeacherSignupResponse(
            access_token=auth.access_token,
            refresh_token=auth.refresh_token,
            user=ProfileResponse.model_validate(auth.profile),
            teacher_id=teacher.id,
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "signing up teacher")
