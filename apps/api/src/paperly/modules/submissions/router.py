"""
Submission Public Router

Endpoints:
- POST /submission/submit/{token} - Submit a question paper (multipart form)

No authentication; the token in the path identifies the teacher.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from paperly.core.database import get_db
from paperly.core.exceptions import ServiceError, raise_internal_error, raise_service_error
from paperly.core.redis import get_redis
from paperly.core.storage import read_upload
from paperly.modules.submissions import service
from paperly.modules.submissions.schemas import BankDetails, SubjectDetails, SubmitResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/submit/{token}",
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit Question Paper",
)
async def submit(
    token: str,
    account_number: str = Form(..., min_length=4, max_length=34),
    routing_code: str = Form(..., min_length=4, max_length=20),
    account_holder_name: str = Form(..., min_length=1, max_length=200),
    subject: str = Form(..., min_length=1, max_length=100),
    class_name: str = Form(..., min_length=1, max_length=50),
    board: str = Form(..., min_length=1, max_length=100),
    exam_type: str = Form(..., min_length=1, max_length=100),
    question_paper: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    redis: Redis | None = Depends(get_redis),
) -> SubmitResponse:
    """
    Submit a question paper with bank and subject details.

    Raises:
        HTTPException 400: Link expired, file missing or invalid
        HTTPException 404: Unknown link
        HTTPException 409: Teacher has already submitted
        HTTPException 500: Submission could not be saved
    """
    try:
        file_name, content = await read_upload(question_paper)

        submission = await service.record_submission(
            db,
            redis,
            token,
            BankDetails(
                account_number=account_number,
                routing_code=routing_code,
                account_holder_name=account_holder_name,
            ),
            SubjectDetails(
                subject=subject,
                class_name=class_name,
                board=board,
                exam_type=exam_type,
            ),
            file_name,
            content,
        )
        return SubmitResponse(
            message="Question paper submitted successfully",
            submission_id=submission.id,
            status=submission.status,
            payment_status=submission.payment_status,
        )
    except ServiceError as e:
        raise_service_error(e)
    except Exception as e:
        raise_internal_error(e, "recording submission")
