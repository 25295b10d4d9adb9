"""
Teachers Admin Router

Endpoints for admins to invite teachers and manage their links.
All endpoints require the admin role.

Endpoints:
- POST /admin/add-teacher - Add a teacher and email the submission link
- GET /admin/teachers - List teachers with filters and pagination
- POST /admin/teachers/{id}/regenerate-token - Replace a teacher's link
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser, get_current_admin_user
from paperly.core.database import get_db
from paperly.core.exceptions import ServiceError, raise_internal_error, raise_service_error
from paperly.core.redis import get_redis
from paperly.modules.teachers import service
from paperly.modules.teachers.schemas import (
    TeacherCreate,
    TeacherLinkResponse,
    TeacherListResponse,
    TeacherResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _link_response(teacher, token: str) -> TeacherLinkResponse:
    return TeacherLinkResponse(
        teacher=TeacherResponse.model_validate(teacher),
        submission_url=service.submission_url(token),
        signup_url=service.signup_url(token),
    )


@router.post(
    "/add-teacher",
    response_model=TeacherLinkResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add Teacher",
)
async def add_teacher(
    data: TeacherCreate,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> TeacherLinkResponse:
    """
    Add a teacher and send them a 7-day submission link.

    Raises:
        HTTPException 409: A teacher with this email already exists
    """
    try:
        teacher, token = await service.add_teacher(db, redis, admin, data)
        logger.info(f"Admin {admin.id} added teacher {teacher.id}")
        return _link_response(teacher, token)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "adding teacher")


@router.get("/teachers", response_model=TeacherListResponse, summary="List Teachers")
async def list_teachers(
    search: str | None = Query(None, max_length=100, description="Search name or email"),
    has_submitted: bool | None = Query(None, description="Filter by submission state"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> TeacherListResponse:
    try:
        teachers, total = await service.list_teachers(
            db,
            search=search,
            has_submitted=has_submitted,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )
        return TeacherListResponse(
            teachers=[TeacherResponse.model_validate(t) for t in teachers],
            total=total,
            skip=skip,
            limit=limit,
        )
    except Exception as e:
        raise_internal_error(e, "listing teachers")


@router.post(
    "/teachers/{teacher_id}/regenerate-token",
    response_model=TeacherLinkResponse,
    summary="Regenerate Submission Link",
)
async def regenerate_token(
    teacher_id: UUID,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> TeacherLinkResponse:
    """
    Issue a fresh 7-day link. The previous link stops working.

    Raises:
        HTTPException 404: Teacher not found
        HTTPException 409: Teacher has already submitted
    """
    try:
        teacher, token = await service.regenerate_token(db, redis, teacher_id)
        logger.info(f"Admin {admin.id} regenerated the link for teacher {teacher_id}")
        return _link_response(teacher, token)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"regenerating token for teacher {teacher_id}")
