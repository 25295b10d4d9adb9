"""
Submissions Admin Router

Endpoints for admins to review submissions and track payments.
All endpoints require the admin role.

Endpoints:
- GET /admin/submissions - List submissions with filters and pagination
- PUT /admin/submissions/{id}/review - Set the review status
- PUT /admin/submissions/{id}/payment - Set the payment status
- GET /admin/dashboard/stats - Dashboard counts
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.auth import CurrentUser, get_current_admin_user
from paperly.core.database import get_db
from paperly.core.exceptions import ServiceError, raise_internal_error, raise_service_error
from paperly.core.redis import get_redis
from paperly.modules.submissions import service
from paperly.modules.submissions.models import PaymentStatus, SubmissionStatus
from paperly.modules.submissions.schemas import (
    DashboardStats,
    PaymentUpdateRequest,
    ReviewRequest,
    SubmissionListItem,
    SubmissionListResponse,
    SubmissionResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/submissions", response_model=SubmissionListResponse, summary="List Submissions")
async def list_submissions(
    status: SubmissionStatus | None = Query(None, description="Filter by review status"),
    payment_status: PaymentStatus | None = Query(None, description="Filter by payment status"),
    search: str | None = Query(None, max_length=100, description="Search teacher or subject"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SubmissionListResponse:
    try:
        submissions, total = await service.list_submissions(
            db,
            status=status,
            payment_status=payment_status,
            search=search,
            sort_order=sort_order,
            skip=skip,
            limit=limit,
        )
        return SubmissionListResponse(
            submissions=[SubmissionListItem.model_validate(s) for s in submissions],
            total=total,
            skip=skip,
            limit=limit,
        )
    except Exception as e:
        raise_internal_error(e, "listing submissions")


@router.put(
    "/submissions/{submission_id}/review",
    response_model=SubmissionResponse,
    summary="Review Submission",
)
async def review_submission(
    submission_id: UUID,
    data: ReviewRequest,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SubmissionResponse:
    """
    Set a submission's review status and notify the teacher.

    Approving with a payment amount also moves payment to processing.

    Raises:
        HTTPException 404: Submission not found
        HTTPException 409: Transition not allowed
    """
    try:
        submission = await service.review_submission(db, redis, submission_id, admin.id, data)
        return SubmissionResponse.model_validate(submission)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"reviewing submission {submission_id}")


@router.put(
    "/submissions/{submission_id}/payment",
    response_model=SubmissionResponse,
    summary="Update Payment",
)
async def update_payment(
    submission_id: UUID,
    data: PaymentUpdateRequest,
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> SubmissionResponse:
    """
    Set an approved submission's payment status and notify the teacher.

    Raises:
        HTTPException 404: Submission not found
        HTTPException 409: Submission not approved, or transition not allowed
    """
    try:
        submission = await service.update_payment_status(
            db, redis, submission_id, admin.id, data
        )
        return SubmissionResponse.model_validate(submission)
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, f"updating payment for submission {submission_id}")


@router.get("/dashboard/stats", response_model=DashboardStats, summary="Dashboard Stats")
async def dashboard_stats(
    db: AsyncSession = Depends(get_db),
    admin: CurrentUser = Depends(get_current_admin_user),
) -> DashboardStats:
    try:
        return DashboardStats(**await service.get_dashboard_stats(db))
    except Exception as e:
        raise_internal_error(e, "getting dashboard stats")
